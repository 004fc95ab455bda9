import asyncio

from cloudstore.core.config import Settings
from cloudstore.core.dependencies import build_services
from cloudstore.models.user import User


def test_defaults(monkeypatch):
    for name in ("SUPABASE_URL", "SUPABASE_KEY", "ADMIN_USERS", "ALLOWED_DOMAINS", "MAX_FOLDER_DEPTH", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.permissions_table == "folderPermissions"
    assert settings.files_table == "filesMetadata"
    assert settings.admin_users == ()
    assert settings.max_folder_depth == 50
    assert settings.log_level == "INFO"
    assert not settings.supabase_enabled


def test_lists_are_trimmed_and_lowercased(monkeypatch):
    monkeypatch.setenv("ADMIN_USERS", " Root@CloudStore.io , ops@x.com,, ")
    monkeypatch.setenv("ALLOWED_DOMAINS", "CloudStore.io")
    monkeypatch.setenv("MAX_FOLDER_DEPTH", "12")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_env()

    assert settings.admin_users == ("root@cloudstore.io", "ops@x.com")
    assert settings.allowed_domains == ("cloudstore.io",)
    assert settings.max_folder_depth == 12
    assert settings.log_level == "DEBUG"


def test_services_fall_back_to_memory_without_supabase():
    services = build_services(Settings(admin_users=("root@cloudstore.io",), max_folder_depth=7))

    assert services.resolver.max_depth == 7
    assert services.resolver.is_system_admin(User(id="u", email="root@cloudstore.io"))

    asyncio.run(services.admin.grant_to_user("f1", "user@x.com", 2, "root@cloudstore.io"))
    grants = asyncio.run(services.permission_store.list_grants("f1"))

    assert [grant.principal_id for grant in grants] == ["user@x.com"]
