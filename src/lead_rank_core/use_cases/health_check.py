"""
Health Check

Performs connectivity checks for the scoring and generation models before a run.
"""

from typing import Callable

from lead_rank_core.domain.entities import HealthCheckResult
from lead_rank_core.infrastructure.model_clients.base import ModelClient


HEALTH_CHECK_PROMPT = "Reply with only 'OK' if you can read this message."


def health_check_model(
    model_name: str,
    create_client_fn: Callable[[str], ModelClient],
) -> HealthCheckResult:
    """
    Execute a health check for a single model.

    Args:
        model_name: Name of the model to check
        create_client_fn: Function to create a model client

    Returns:
        HealthCheckResult: Health check result
    """
    try:
        client = create_client_fn(model_name)
        response = client.generate(HEALTH_CHECK_PROMPT, max_tokens=16)
        if not response.output:
            return HealthCheckResult(
                model_name=model_name,
                success=False,
                latency_ms=response.latency_ms,
                error="Empty response",
            )
        return HealthCheckResult(
            model_name=model_name,
            success=True,
            latency_ms=response.latency_ms,
            error=None
        )
    except Exception as e:
        return HealthCheckResult(
            model_name=model_name,
            success=False,
            latency_ms=None,
            error=str(e)
        )


def health_check_all_models(
    models: list[str],
    create_client_fn: Callable[[str], ModelClient],
) -> tuple[list[str], list[HealthCheckResult]]:
    """
    Execute health checks for all models.

    Args:
        models: List of model names to check
        create_client_fn: Function to create a model client

    Returns:
        tuple: (list of available models, list of all check results)
    """
    print("=== Model Health Check ===\n")
    results = []
    available_models = []

    # The same model often serves both roles
    for model_name in dict.fromkeys(models):
        print(f"  {model_name}... ", end="", flush=True)
        result = health_check_model(model_name, create_client_fn)
        results.append(result)

        if result.success:
            print(f"OK ({result.latency_ms}ms)")
            available_models.append(model_name)
        else:
            # Display only the first 100 characters of the error message
            error_short = result.error[:100] if result.error else "Unknown error"
            print("FAILED")
            print(f"    Error: {error_short}")

    print()
    return available_models, results


def run_health_check(
    models: list[str],
    create_client_fn: Callable[[str], ModelClient] | None = None,
) -> tuple[list[str], list[HealthCheckResult]]:
    """
    Execute health checks for all models (high-level function).

    Uses the model client factory if create_client_fn is not specified.

    Args:
        models: List of model names to check
        create_client_fn: Function to create a model client (optional)

    Returns:
        tuple: (list of available models, list of all check results)
    """
    if create_client_fn is None:
        from lead_rank_core.infrastructure.model_clients.factory import create_client
        create_client_fn = create_client

    return health_check_all_models(models, create_client_fn)


def troubleshooting_hint(model_name: str) -> str:
    """Setup hint shown when a model fails its health check"""
    if model_name.startswith("lmstudio/"):
        return (
            "Verify LMStudio is running. In Docker, set "
            "LMSTUDIO_BASE_URL=http://host.docker.internal:1234/v1"
        )
    if model_name.startswith("claude"):
        return "Set the ANTHROPIC_API_KEY environment variable"
    if model_name.startswith("gemini"):
        return "Set GCP_PROJECT_ID and run `gcloud auth application-default login`"
    return "Set the OPENAI_API_KEY environment variable"
