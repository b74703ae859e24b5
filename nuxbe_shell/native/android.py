"""
Android platform bridge via pyjnius.

Only usable in a python-for-android build; jnius is imported lazily so the
rest of the package loads on desktop.
"""

import asyncio
import logging

from ..store import ConnectionStore
from .base import DeviceInfo, PlatformBridge

logger = logging.getLogger('nuxbe.shell.native.android')

# SharedPreferences file written by the launcher activity
PREFS_NAME = 'CapacitorStorage'
PREF_PENDING_URL = 'pending_deep_link_url'
PREF_PENDING_PATH = 'pending_deep_link_path'

NOTIFICATION_CHANNEL_ID = 'nuxbe_default_channel'


def _activity():
    from jnius import autoclass

    PythonActivity = autoclass('org.kivy.android.PythonActivity')
    return PythonActivity.mActivity


class AndroidBridge(PlatformBridge):
    """Native Android capabilities."""

    is_native = True
    platform = 'android'
    shell_base_url = 'http://localhost'

    def __init__(self, store: ConnectionStore):
        super().__init__(store)
        self._device_info: DeviceInfo | None = None

    async def get_device_id(self) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._read_android_id)

    async def get_device_info(self) -> DeviceInfo:
        if self._device_info is None:
            loop = asyncio.get_running_loop()
            self._device_info = await loop.run_in_executor(None, self._read_build_info)
        return self._device_info

    async def take_launch_marker(self) -> tuple[str, str] | None:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._take_pending_prefs)
        except Exception as e:
            logger.error(f"Reading launch deep link failed: {e}")
            return None

    async def setup_native_features(self):
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._create_notification_channel)

    def _read_android_id(self) -> str:
        from jnius import autoclass

        Secure = autoclass('android.provider.Settings$Secure')
        return Secure.getString(_activity().getContentResolver(), Secure.ANDROID_ID)

    def _read_build_info(self) -> DeviceInfo:
        from jnius import autoclass

        Build = autoclass('android.os.Build')
        Version = autoclass('android.os.Build$VERSION')
        return DeviceInfo(
            platform='android',
            model=Build.MODEL,
            os_version=Version.RELEASE,
            manufacturer=Build.MANUFACTURER,
        )

    def _take_pending_prefs(self) -> tuple[str, str] | None:
        from jnius import autoclass

        Context = autoclass('android.content.Context')
        prefs = _activity().getSharedPreferences(PREFS_NAME, Context.MODE_PRIVATE)
        url = prefs.getString(PREF_PENDING_URL, None)
        path = prefs.getString(PREF_PENDING_PATH, None)
        if not url or not path:
            return None

        editor = prefs.edit()
        editor.remove(PREF_PENDING_URL)
        editor.remove(PREF_PENDING_PATH)
        editor.commit()
        logger.info(f"Launch deep link: {url}{path}")
        return url, path

    def _create_notification_channel(self):
        """Register the channel push notifications are delivered on (Android 8+)."""
        try:
            from jnius import autoclass

            if autoclass('android.os.Build$VERSION').SDK_INT < 26:
                return

            Context = autoclass('android.content.Context')
            NotificationManager = autoclass('android.app.NotificationManager')
            NotificationChannel = autoclass('android.app.NotificationChannel')

            channel = NotificationChannel(
                NOTIFICATION_CHANNEL_ID, 'Nuxbe Notifications',
                NotificationManager.IMPORTANCE_HIGH,
            )
            channel.setDescription('Default channel for Nuxbe push notifications')
            channel.enableVibration(True)

            manager = _activity().getSystemService(Context.NOTIFICATION_SERVICE)
            manager.createNotificationChannel(channel)
        except Exception as e:
            logger.error(f"Android notification channel setup failed: {e}")
            raise
