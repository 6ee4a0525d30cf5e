from .bikes import Bike
from .rentals import Rental
from .settings import ParkConfig

__all__ = [
    'Bike',
    'Rental',
    'ParkConfig',
]
