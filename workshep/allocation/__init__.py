"""
Reviewer allocation methods, keyed by name.
"""
from ..errors import ValidationError
from .base import Allocator, AllocationResult
from .manual import ManualAllocator
from .random_allocator import RandomAllocator
from .scheduled import ScheduledAllocator, cron

ALLOCATORS = {
    ManualAllocator.name: ManualAllocator,
    RandomAllocator.name: RandomAllocator,
    ScheduledAllocator.name: ScheduledAllocator,
}


def get_allocator(state: dict, name: str) -> Allocator:
    if name not in ALLOCATORS:
        raise ValidationError(f"Unknown allocation method: {name}")
    return ALLOCATORS[name](state)


__all__ = ['ALLOCATORS', 'Allocator', 'AllocationResult', 'cron', 'get_allocator']
