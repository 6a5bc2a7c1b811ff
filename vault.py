"""
Local-folder stand-in for the note app's vault: a root directory holding
Markdown notes and their attachments, addressed by vault-relative POSIX paths.
"""

from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import List, Optional


@dataclass(frozen=True)
class VaultFolder:
    path: str  # "" is the vault root


@dataclass(frozen=True)
class VaultFile:
    path: str

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name

    @property
    def basename(self) -> str:
        return PurePosixPath(self.path).stem

    @property
    def extension(self) -> str:
        return PurePosixPath(self.path).suffix.lstrip(".")

    @property
    def parent(self) -> VaultFolder:
        parent = str(PurePosixPath(self.path).parent)
        return VaultFolder("" if parent == "." else parent)


def join_path(folder_path: str, name: str) -> str:
    return f"{folder_path}/{name}" if folder_path else name


class Vault:
    def __init__(self, root):
        self.root = Path(root).expanduser().resolve()

    def absolute_path(self, path: str) -> Path:
        p = (self.root / path).resolve()
        if p != self.root and self.root not in p.parents:
            raise ValueError(f"Path escapes the vault: {path}")
        return p

    def get_file(self, path: str) -> Optional[VaultFile]:
        if not path:
            return None
        p = self.absolute_path(path)
        if not p.is_file():
            return None
        return VaultFile(p.relative_to(self.root).as_posix())

    def get_folder(self, path: str) -> Optional[VaultFolder]:
        p = self.absolute_path(path)
        if not p.is_dir():
            return None
        rel = p.relative_to(self.root).as_posix()
        return VaultFolder("" if rel == "." else rel)

    def list_files(self, folder: VaultFolder) -> List[VaultFile]:
        """Immediate children that are regular, non-hidden files, sorted by name."""
        base = self.absolute_path(folder.path)
        out = []
        for p in sorted(base.iterdir(), key=lambda x: x.name):
            if p.name.startswith(".") or not p.is_file():
                continue
            out.append(VaultFile(join_path(folder.path, p.name)))
        return out

    def file_size(self, file: VaultFile) -> int:
        return self.absolute_path(file.path).stat().st_size

    def read(self, file: VaultFile) -> str:
        return self.absolute_path(file.path).read_text("utf-8")

    def read_binary(self, file: VaultFile) -> bytes:
        return self.absolute_path(file.path).read_bytes()

    def _atomic_write(self, path: str, data: bytes) -> Path:
        target = self.absolute_path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(target.name + ".tmp")
        tmp.write_bytes(data)
        tmp.replace(target)
        return target

    def modify(self, file: VaultFile, text: str) -> None:
        self._atomic_write(file.path, text.encode("utf-8"))

    def append(self, file: VaultFile, text: str) -> None:
        with self.absolute_path(file.path).open("a", encoding="utf-8") as f:
            f.write(text)

    def create_binary(self, path: str, data: bytes) -> VaultFile:
        if self.absolute_path(path).exists():
            raise FileExistsError(path)
        self._atomic_write(path, data)
        return VaultFile(path)

    def modify_binary(self, file: VaultFile, data: bytes) -> None:
        self._atomic_write(file.path, data)

    def write_binary(self, path: str, data: bytes) -> VaultFile:
        """Overwrite the file at path in place if it exists, else create it."""
        existing = self.get_file(path)
        if existing is not None:
            self.modify_binary(existing, data)
            return existing
        return self.create_binary(path, data)
