import base64
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from app_contract import MAX_FILE_BYTES
from prep_errors import FileTooLargeError, UnsupportedTypeError
from vault import Vault, VaultFile, VaultFolder

log = logging.getLogger(__name__)

IMAGE_RE = re.compile(r"\.(png|jpe?g|webp)$", re.IGNORECASE)
PLAYER_IMAGE_RE = re.compile(r"_player\.(png|jpe?g|webp)$", re.IGNORECASE)
PDF_RE = re.compile(r"\.pdf$", re.IGNORECASE)

IMAGE_EXTS = {"png", "jpg", "jpeg", "webp"}


@dataclass(frozen=True)
class AssetReference:
    path: str
    name: str

    def to_dict(self) -> dict:
        return {"path": self.path, "name": self.name}


@dataclass(frozen=True)
class MaterializedAsset:
    path: str
    name: str
    data_url: str


@dataclass
class FolderSummary:
    folder_path: str
    maps: List[AssetReference] = field(default_factory=list)
    pcs: List[AssetReference] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "folderPath": self.folder_path,
            "maps": [m.to_dict() for m in self.maps],
            "pcs": [p.to_dict() for p in self.pcs],
        }


@dataclass
class MaterializedAssets:
    folder_path: str
    maps: List[MaterializedAsset] = field(default_factory=list)
    pcs: List[MaterializedAsset] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.maps and not self.pcs


def _ref(file: VaultFile) -> AssetReference:
    return AssetReference(path=file.path, name=file.basename)


def build_folder_summary(vault: Vault, folder: VaultFolder) -> FolderSummary:
    """
    Classify the folder's direct children. Player-view images hide the GM
    variants; without any player image every image counts as a map.
    """
    files = vault.list_files(folder)

    images = [f for f in files if IMAGE_RE.search(f.name)]
    player_images = [f for f in images if PLAYER_IMAGE_RE.search(f.name)]
    pcs = [f for f in files if PDF_RE.search(f.name)]

    return FolderSummary(
        folder_path=folder.path,
        maps=[_ref(f) for f in (player_images or images)],
        pcs=[_ref(f) for f in pcs],
    )


def mime_type_for(extension: str) -> str:
    ext = (extension or "").lower()
    if ext == "pdf":
        return "application/pdf"
    if ext in IMAGE_EXTS:
        return f"image/{'jpeg' if ext == 'jpg' else ext}"
    raise UnsupportedTypeError(f"Unsupported file type: {ext or 'unknown'}.")


def encode_data_url(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def _too_large(size: int, max_bytes: int) -> FileTooLargeError:
    size_mb = size / (1024 * 1024)
    max_mb = max_bytes / (1024 * 1024)
    return FileTooLargeError(
        f"File is too large to load ({size_mb:.1f} MB). Please reduce the size below {max_mb:.1f} MB.",
        size_bytes=size,
        max_bytes=max_bytes,
    )


def check_asset(vault: Vault, file: VaultFile, max_bytes: int = MAX_FILE_BYTES) -> str:
    """
    Validate type and size without reading the content. Returns the mime type.
    """
    mime_type = mime_type_for(file.extension)
    size = vault.file_size(file)
    if size > max_bytes:
        raise _too_large(size, max_bytes)
    return mime_type


def load_file_as_data_url(
    vault: Vault,
    file: Optional[VaultFile],
    notice_cb: Optional[Callable[[str], None]] = None,
    max_bytes: int = MAX_FILE_BYTES,
) -> Optional[str]:
    """
    data:{mime};base64,{...} for a supported attachment, or None. Failures are
    logged and reported here so a batch can carry on with the next file.
    """
    notice = notice_cb or (lambda _msg: None)

    if file is None:
        message = "No file provided to load as data URL."
        log.error(message)
        notice(message)
        return None

    try:
        mime_type = check_asset(vault, file, max_bytes=max_bytes)
        data = vault.read_binary(file)
        # The file may have grown between stat and read.
        if len(data) > max_bytes:
            raise _too_large(len(data), max_bytes)
    except UnsupportedTypeError as e:
        log.error("%s (%s)", e, file.path)
        notice(str(e))
        return None
    except FileTooLargeError as e:
        log.warning("%s (%s)", e, file.path)
        notice(str(e))
        return None
    except OSError as e:
        message = f"Failed to load file as data URL: {file.path}."
        log.error("%s %s", message, e)
        notice(message)
        return None

    return encode_data_url(data, mime_type)


def load_assets_for_folder(
    vault: Vault,
    folder: VaultFolder,
    notice_cb: Optional[Callable[[str], None]] = None,
) -> MaterializedAssets:
    """Materialize maps then party sheets, one file at a time."""
    summary = build_folder_summary(vault, folder)
    out = MaterializedAssets(folder_path=summary.folder_path)

    for refs, bucket in ((summary.maps, out.maps), (summary.pcs, out.pcs)):
        for ref in refs:
            data_url = load_file_as_data_url(vault, vault.get_file(ref.path), notice_cb)
            if data_url:
                bucket.append(MaterializedAsset(path=ref.path, name=ref.name, data_url=data_url))

    return out
