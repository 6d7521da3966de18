"""Tests unitarios para LocalFileStore."""

import os
import time

import pytest

from app.services.file_store import LocalFileStore


class TestStagedName:
    def test_directory_parts_are_stripped(self):
        """El nombre guardado nunca contiene directorios del cliente."""
        name = LocalFileStore.staged_name("../../etc/passwd")
        assert name.endswith("_passwd")
        assert "/" not in name

    def test_windows_paths_are_stripped(self):
        assert LocalFileStore.staged_name("C:\\Users\\me\\report.xlsx").endswith("_report.xlsx")

    def test_names_are_unique(self):
        assert LocalFileStore.staged_name("report.pdf") != LocalFileStore.staged_name("report.pdf")


class TestStaging:
    """Tests para el ciclo staging -> lectura -> descarte."""

    @pytest.mark.asyncio
    async def test_stage_read_discard(self, tmp_path):
        """Debe escribir, leer y eliminar el archivo temporal."""
        store = LocalFileStore(str(tmp_path / "staging"))

        handle = await store.stage_pending_upload(b"audit results", "audit.pdf", "application/pdf")

        assert handle.path.exists()
        assert handle.original_name == "audit.pdf"
        assert handle.size == len(b"audit results")
        assert await store.read(handle) == b"audit results"

        assert await store.discard(handle) is True
        assert not handle.path.exists()
        assert await store.discard(handle) is False

    @pytest.mark.asyncio
    async def test_cleanup_removes_only_old_files(self, tmp_path):
        """La limpieza elimina solo archivos más viejos que el límite."""
        store = LocalFileStore(str(tmp_path))
        old = await store.stage_pending_upload(b"old", "old.zip")
        fresh = await store.stage_pending_upload(b"fresh", "fresh.zip")
        past = time.time() - 7200
        os.utime(old.path, (past, past))

        assert await store.cleanup_older_than(3600) == 1
        assert not old.path.exists()
        assert fresh.path.exists()

    @pytest.mark.asyncio
    async def test_cleanup_without_directory(self, tmp_path):
        store = LocalFileStore(str(tmp_path / "missing"))
        assert await store.cleanup_older_than(0) == 0
