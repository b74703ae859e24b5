from .base import DeviceInfo, PlatformBridge, WebBridge

__all__ = ['DeviceInfo', 'PlatformBridge', 'WebBridge']
