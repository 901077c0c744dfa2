"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("CHAT_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
        Path(__file__).resolve().parents[1] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- 流式 Webhook ----
    webhook_url: str = Field(default="", description="流式对话 Webhook 地址（POST）")
    http_timeout: float = Field(default=30.0, ge=1.0, description="HTTP 超时时间（秒）")

    # ---- 非流式问答（Gemini REST）----
    gemini_api_key: Optional[str] = Field(default=None, description="Gemini API 密钥")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini API 基础URL",
    )
    gemini_model: str = Field(default="gemini-2.5-flash", description="非流式问答使用的模型")

    # ---- 存储与历史 ----
    storage_root: str = Field(default=".storage", description="键值存储根目录")
    history_key: str = Field(
        default="koiiaai_chat_history",
        description="历史记录在键值存储中的 key",
    )
    title_max_chars: int = Field(default=50, ge=1, description="历史标题最大字符数")

    # ---- 日志 ----
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    error_message_template: str = Field(
        default="Sorry, I encountered an error: {message}",
        description="流式失败且没有任何内容时，占位回复展示的错误文本",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("gemini_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @field_validator("error_message_template")
    @classmethod
    def validate_error_template(cls, v: str) -> str:
        if "{message}" not in v:
            raise ValueError("error_message_template must contain '{message}'")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = Settings()
