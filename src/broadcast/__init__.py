"""
Broadcast module connecting source pollers to their consumers
"""

from .channels import BroadcastChannel, Subscription, WatchChannel, WatchReceiver, DEFAULT_CAPACITY

__all__ = ['BroadcastChannel', 'Subscription', 'WatchChannel', 'WatchReceiver', 'DEFAULT_CAPACITY']
