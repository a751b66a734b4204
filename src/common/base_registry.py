"""
共通レジストリ基底クラス
レンダラ/エンコーダのバックエンド名 → ファクトリの対応表で使用する統一されたレジストリ
"""

import re
from typing import Any, Callable


class BaseRegistry:
    """名前付きファクトリのレジストリ。

    - 文字列キーは正規化されます（大文字小文字・キャメル→スネーク・ハイフンを吸収）。
    - デコレータは名前省略可。省略時はクラス/関数名から自動推論します。
    """

    def __init__(self, kind: str = "entry"):
        # 表示用の種別名（エラーメッセージに使う）
        self._kind = kind
        self._registry: dict[str, Any] = {}

    # === 内部ユーティリティ ===
    @staticmethod
    def _camel_to_snake(name: str) -> str:
        s1 = re.sub(r"(.)([A-Z][a-z]+)", r"\1_\2", name)
        s2 = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s1)
        return s2.lower()

    @classmethod
    def _normalize_key(cls, name: str) -> str:
        """レジストリキーの正規化（例: "Headless-Chrome" -> "headless_chrome", "FFMPEG" -> "ffmpeg"）。"""
        if not isinstance(name, str):
            raise TypeError("レジストリキーは str である必要があります")
        if not name:
            raise ValueError("レジストリキーは空であってはなりません")
        # 大文字を含む場合のみキャメル→スネーク変換（区切りの後に "_" が重なっても 1 つに潰す）
        key = cls._camel_to_snake(name) if any(c.isupper() for c in name) else name.lower()
        return re.sub(r"_+", "_", key.replace("-", "_"))

    def register(self, name: str | None = None) -> Callable:
        """クラス/関数をレジストリに登録するデコレータ。"""

        def decorator(obj: Any) -> Any:
            key = self._normalize_key(name) if name else self._normalize_key(obj.__name__)
            if key in self._registry and self._registry[key] is not obj:
                raise ValueError(f"{self._kind} '{key}' is already registered")
            self._registry[key] = obj
            return obj

        return decorator

    def get(self, name: str) -> Any:
        """登録されたクラス/関数を取得。未登録なら登録済み名を列挙した KeyError。"""
        key = self._normalize_key(name)
        if key not in self._registry:
            available = ", ".join(sorted(self._registry)) or "(none)"
            raise KeyError(f"unknown {self._kind} '{name}'. Available: {available}")
        return self._registry[key]

    def create(self, name: str, **kwargs: Any) -> Any:
        """登録済みファクトリを呼び出して新しいインスタンスを返す。"""
        return self.get(name)(**kwargs)

    def list_all(self) -> list[str]:
        """登録されているすべての名前を取得（未ソート）。"""
        return list(self._registry.keys())

    def is_registered(self, name: str) -> bool:
        """指定された名前が登録されているかチェック"""
        return self._normalize_key(name) in self._registry

    def unregister(self, name: str) -> None:
        """レジストリから削除（名前が存在しない場合は無視）。"""
        key = self._normalize_key(name)
        if key in self._registry:
            del self._registry[key]

    def clear(self) -> None:
        """レジストリをクリア"""
        self._registry.clear()

    @property
    def registry(self) -> dict[str, Any]:
        """レジストリの読み取り専用アクセス"""
        return self._registry.copy()
