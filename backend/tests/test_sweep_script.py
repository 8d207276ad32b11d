import json
import os
import sys
import time
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_ROOT / "scripts"))

import sweep_orphans  # noqa: E402


def test_sweep_script_removes_stale_temp_files(tmp_path: Path, monkeypatch, capsys):
    upload_dir = tmp_path / "uploads"
    partition = upload_dir / "2024" / "01"
    partition.mkdir(parents=True)
    orphan = partition / "upload-123"
    orphan.write_bytes(b"partial")
    stale = time.time() - 7200
    os.utime(orphan, (stale, stale))

    (tmp_path / "config.json").write_text(json.dumps({"storage": {"upload_dir": str(upload_dir)}}), encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("APP_CONFIG_FILE", raising=False)
    monkeypatch.delenv("APP_STORAGE_UPLOAD_DIR", raising=False)

    assert sweep_orphans.main(["--dry-run"]) == 0
    assert orphan.name in capsys.readouterr().out
    assert orphan.exists()

    assert sweep_orphans.main([]) == 0
    assert not orphan.exists()
