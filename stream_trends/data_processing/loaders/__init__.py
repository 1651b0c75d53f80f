from .observation_loader import ObservationLoader

__all__ = ['ObservationLoader']
