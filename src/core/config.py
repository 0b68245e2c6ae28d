"""Configuración del Core.

Por qué aquí:
- Centraliza variables de entorno (pydantic-settings) sin contaminar la CLI.
- Permite que adaptadores (HTTP Envia, tabla DANE) lean config de forma consistente.
- El origen del envío es un valor de configuración inyectado, no una constante
  de módulo: otro remitente solo requiere otras variables de entorno.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_user_config_dir() -> Path:
    """Directorio de configuración por usuario (cross-platform, sin dependencias)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "envios"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "envios"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "envios"
    return Path.home() / ".config" / "envios"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


def write_user_env_vars(values: dict[str, str], *, env_path: Path | None = None) -> Path:
    """Escribe/actualiza variables en el .env global del usuario."""

    env_path = env_path or get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        existing = _parse_env_lines(env_path.read_text(encoding="utf-8"))

    existing.update({k: v for k, v in values.items() if v is not None})

    lines = ["# envios user config (.env)"]
    for key in sorted(existing.keys()):
        lines.append(f"{key}={existing[key]}")
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return env_path


class OriginSettings(BaseModel):
    """Dirección de origen de los envíos (remitente)."""

    country: str = Field(default="CO", min_length=2, max_length=2)
    state: str = Field(default="DC", min_length=2, max_length=2, description="Código de estado Envia.")
    city: str = Field(default="11001000", description="Código DANE del municipio de origen.")
    postal_code: str = Field(default="11001000", description="Envia acepta el código DANE como postal.")


class AppSettings(BaseSettings):
    """Configuración central de la aplicación.

    Variables `ENVIOS_*`; el origen anidado se sobreescribe con
    `ENVIOS_ORIGIN__STATE`, `ENVIOS_ORIGIN__CITY`, etc.
    """

    model_config = SettingsConfigDict(
        env_prefix="ENVIOS_",
        extra="ignore",
        case_sensitive=False,
        env_nested_delimiter="__",
        # Orden: proyecto primero (dev), luego config global de usuario.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    envia_api_key: str | None = Field(
        default=None,
        description="API key (Bearer) de Envia.com.",
    )
    envia_base_url: str = Field(
        default="https://api.envia.com",
        min_length=8,
        description="Base URL de la API de cotización de Envia.com.",
    )
    http_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout por request a la API de tarifas (segundos).",
    )
    user_agent: str = Field(
        default="envios/0.1 (+https://local)",
        min_length=1,
        description="User-Agent para peticiones salientes.",
    )

    carriers: list[str] = Field(
        default_factory=lambda: ["coordinadora", "interrapidisimo", "deprisa"],
        min_length=1,
        description="Transportadoras cotizadas en cada solicitud.",
    )

    fuzzy_threshold: float = Field(
        default=0.70,
        ge=0.0,
        le=1.0,
        description="Similitud mínima para aceptar una coincidencia difusa de ciudad.",
    )
    max_suggestions: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Cantidad de sugerencias devueltas en el diagnóstico de coincidencia.",
    )
    default_division_code: str = Field(
        default="11001000",
        min_length=1,
        description="Código DANE de respaldo cuando la ciudad no se resuelve (Bogotá D.C.).",
    )
    default_state_code: str = Field(
        default="DC",
        min_length=2,
        max_length=2,
        description="Código de estado de respaldo cuando el departamento no se reconoce.",
    )

    default_package_weight: float = Field(default=0.5, gt=0, description="Peso por defecto (kg).")
    default_declared_value: float = Field(default=100_000, gt=0, description="Valor declarado por defecto (COP).")
    default_length_cm: float = Field(default=30, gt=0)
    default_width_cm: float = Field(default=25, gt=0)
    default_height_cm: float = Field(default=10, gt=0)
    package_content: str = Field(default="Ropa", min_length=1)
    currency: str = Field(default="COP", min_length=3, max_length=3)

    origin: OriginSettings = Field(default_factory=OriginSettings)

    # Tabla de referencia DANE (municipio -> código).
    divisions_path: Path | None = Field(
        default=None,
        description="Ruta local a un JSON de municipios (reemplaza el dataset incluido).",
    )
    divisions_url: str | None = Field(
        default=None,
        description="Base URL PostgREST (p.ej. Supabase) desde donde cargar la tabla de municipios.",
    )
    divisions_api_key: str | None = Field(
        default=None,
        description="API key del servicio PostgREST.",
    )
    divisions_table: str = Field(
        default="dane_municipalities",
        min_length=1,
        description="Nombre de la tabla de municipios en PostgREST.",
    )
