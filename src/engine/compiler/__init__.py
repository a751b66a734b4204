"""
どこで: `engine.compiler` サブパッケージ。
何を: テンプレートの静的メタデータ抽出・サンドボックス評価・コンパイル/検証/ファイル読込。
なぜ: 「コンパイル失敗」と「実行時失敗」を別の段階として扱い、上位層へ値で返すため。
"""

from .compiler import (
    CompileResult,
    ParsedTemplate,
    compile_template,
    load_template,
    sample_context,
    validate_template,
)
from .metadata import TemplateMetadata, extract_metadata

__all__ = [
    "CompileResult",
    "ParsedTemplate",
    "TemplateMetadata",
    "compile_template",
    "extract_metadata",
    "load_template",
    "sample_context",
    "validate_template",
]
