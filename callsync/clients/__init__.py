"""
Outbound HTTP clients.

- ringba: origin call-log feed (paged, per campaign target)
"""

from callsync.clients.ringba import RingbaCallLogClient, build_call_log_request

__all__ = [
    'RingbaCallLogClient',
    'build_call_log_request',
]
