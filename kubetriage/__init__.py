"""kubetriage — AI-assisted triage of broken Kubernetes workloads."""

__app_name__ = "kubetriage"
__version__ = "0.1.0"
