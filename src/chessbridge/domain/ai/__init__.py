from .coordinator import AICoordinator, BestMoveCallback, ReadyCallback

__all__ = ["AICoordinator", "BestMoveCallback", "ReadyCallback"]
