from orchestrator.orchestrator_manager import Services, orchestrator_manager


def get_services() -> Services:
    """FastAPI dependency; overridden in tests with fake providers."""
    return orchestrator_manager.get_services()
