"""
Структуры сообщений, которыми клиент обменивается с сервером.

Сервер присылает словари (JSON), клиент отправляет словари.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class ConsoleMessage:
    """Строка консоли сервера."""
    type: str = ""
    line: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> 'ConsoleMessage':
        if not isinstance(data, dict):
            return cls(line=str(data) if data is not None else "")
        line = data.get("line")
        return cls(
            type=str(data.get("type") or ""),
            line=line if isinstance(line, str) else ("" if line is None else str(line))
        )


@dataclass
class GitCloneData:
    """Запрос на git clone."""
    dir: str
    url: str
    branch: str
    authkey: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"dir": self.dir, "url": self.url, "branch": self.branch}
        if self.authkey is not None:
            data["authkey"] = self.authkey
        return data


@dataclass
class GitPullData:
    """Запрос на git pull."""
    dir: str
    authkey: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"dir": self.dir}
        if self.authkey is not None:
            data["authkey"] = self.authkey
        return data


@dataclass
class GitCloneResult:
    """Результат git clone."""
    is_private: bool = False


@dataclass
class GitPullResult:
    """Результат git pull: идентификатор коммита (может быть пустым)."""
    output: str = ""
    is_private: bool = False


@dataclass
class FilesearchFile:
    """
    Совпадения в одном файле.

    ``lines`` - номера строк и их содержимое, вместе с соседними строками контекста.
    """
    results: int = 0
    lines: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> 'FilesearchFile':
        return cls(
            results=int(data.get("results", 0)),
            lines={str(k): v for k, v in (data.get("lines") or {}).items()}
        )


@dataclass
class FilesearchResults:
    """Результаты поиска по содержимому файлов."""
    files: Dict[str, FilesearchFile] = field(default_factory=dict)
    too_many: bool = False

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'FilesearchResults':
        data = data or {}
        return cls(
            files={
                name: FilesearchFile.from_dict(file_data or {})
                for name, file_data in (data.get("files") or {}).items()
            },
            too_many=bool(data.get("tooMany", False))
        )

    def to_dict(self) -> dict:
        return {
            "files": {
                name: {"results": f.results, "lines": dict(f.lines)}
                for name, f in self.files.items()
            },
            "tooMany": self.too_many
        }
