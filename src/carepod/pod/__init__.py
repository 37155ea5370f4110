"""HTTP access to pod resources."""

from carepod.pod.client import ResourceClient
from carepod.pod.session import PodSession

__all__ = ["PodSession", "ResourceClient"]
