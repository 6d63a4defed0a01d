import logging

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class SaveSyncConfig(AppConfig):
    name = 'savesync'
    verbose_name = 'Save Sync'
    default_auto_field = 'django.db.models.BigAutoField'

    def ready(self):
        """
        Run when Django app is ready.

        Warns early when no destination storage is usable, since every
        sync would otherwise end without doing anything.
        """
        import sys
        if 'sync_saves' not in sys.argv and 'runserver' not in sys.argv:
            return

        from savesync.sync.destination import resolve_destination_root

        if resolve_destination_root() is None:
            logger.warning(
                "No destination storage available; check SAVESYNC_GAME_DATA_DIR "
                "or SAVESYNC_EXTERNAL_STORAGE_PATH"
            )
