from .dashboard_client import DashboardClient, DashboardClientError, print_event

__all__ = [
    'DashboardClient',
    'DashboardClientError',
    'print_event'
]
