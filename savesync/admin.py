from django.contrib import admin

from .models import CatalogEntry
from .sync.models import SyncEvent, SyncSession
from .sync.recorder import request_cancel


@admin.register(CatalogEntry)
class CatalogEntryAdmin(admin.ModelAdmin):
    list_display = ["good_name", "header_name", "country_code", "md5", "crc", "updated_at"]
    list_filter = ["country_code"]
    search_fields = ["good_name", "header_name", "md5", "crc"]


@admin.register(SyncSession)
class SyncSessionAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "scope",
        "game_md5",
        "status",
        "started_at",
        "completed_at",
        "entries_matched",
        "entries_deleted",
        "entries_downloaded",
    ]
    list_filter = ["status", "scope", "started_at"]
    search_fields = ["game_md5", "error_message"]
    readonly_fields = ["started_at", "completed_at", "cancel_requested"]
    actions = ["request_cancellation"]

    @admin.action(description="Stop selected running syncs")
    def request_cancellation(self, request, queryset):
        flagged = sum(request_cancel(session.id) for session in queryset)
        self.message_user(request, f"Requested stop for {flagged} running sync(s).")


@admin.register(SyncEvent)
class SyncEventAdmin(admin.ModelAdmin):
    list_display = ["id", "session", "event_type", "timestamp", "entry_name"]
    list_filter = ["event_type", "timestamp"]
    search_fields = ["entry_name", "message"]
    readonly_fields = ["timestamp"]
    raw_id_fields = ["session"]
