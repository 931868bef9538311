"""
Central configuration for the membership registry.

Keep runtime-safe (no secrets). Supabase credentials come from the environment.
"""

import os
from types import MappingProxyType

# Sexes
MASCULINO = "Masculino"
FEMININO = "Feminino"
SEXES = (MASCULINO, FEMININO)

# Role catalogs
DEFAULT_ROLE = "Membro"
ROLES_ECLESIASTICOS = (
    "Membro",
    "Músico",
    "Cooperador",
    "Diácono",
    "Presbítero",
    "Evangelista",
    "Pastor",
    "Missionário",
)
ROLES_ECLESIASTICOS_FEMININOS = ("Cooperadora", "Diaconisa", "Missionária")
ROLES_ADMINISTRATIVOS = (
    "Presidente de Honra",
    "Presidente",
    "Vice-Presidente",
    "1° Tesoureiro",
    "2° Tesoureiro",
    "1° Secretário",
    "2° Secretário",
)
ROLES_ADMINISTRATIVOS_FEMININOS = (
    "1° Tesoureira",
    "2° Tesoureira",
    "1° Secretária",
    "2° Secretária",
)

# Whole-role swaps (masculine -> feminine)
GENDERED_ROLES = MappingProxyType(
    {
        "Diácono": "Diaconisa",
        "Cooperador": "Cooperadora",
        "Missionário": "Missionária",
    }
)
# Root-word swaps; any ordinal prefix around the root is preserved
GENDERED_ROOTS = MappingProxyType(
    {
        "Tesoureiro": "Tesoureira",
        "Secretário": "Secretária",
    }
)

# Administrative registration suffixes
SUFFIX_PRESIDENTE = "PRE"
SUFFIX_VICE = "VIC"
SUFFIX_TESOUREIRO = "TES"
SUFFIX_SECRETARIO = "SEC"
SUFFIXES = (SUFFIX_PRESIDENTE, SUFFIX_VICE, SUFFIX_TESOUREIRO, SUFFIX_SECRETARIO)

# Member defaults
STATUS_OPTIONS = ("ATIVO", "SUSPENSO", "DESLIGADO", "INATIVO", "FALECIDO")
DEFAULT_STATUS = "ATIVO"
CONGREGATIONS = ("SEDE", "PEDRA 90", "PEDRA PRETA")
DEFAULT_CONGREGATION = "SEDE"
UF_LIST = (
    "AC", "AL", "AP", "AM", "BA", "CE", "DF", "ES", "GO", "MA", "MT", "MS", "MG", "PA",
    "PB", "PR", "PE", "PI", "RJ", "RN", "RS", "RO", "RR", "SC", "SP", "SE", "TO",
)

# Persistence
MEMBERS_TABLE = "members"
DUPLICATE_ERROR_PATTERNS = ("members_registration_number_uq", "duplicate key")
DUPLICATE_REGISTRATION_MESSAGE = (
    "Essa matrícula já existe. Clique em 'Novo Membro' novamente para o sistema "
    "gerar a próxima matrícula e tente salvar."
)
NOT_AUTHENTICATED_MESSAGE = "Usuário não autenticado."
HTTP_TIMEOUT_S = 30
HTTP_MAX_ATTEMPTS = 2
USER_AGENT = "jardim-membership-registry/1.0"


def supabase_settings() -> dict:
    """
    Read Supabase connection settings from the environment.

    SUPABASE_URL and SUPABASE_ANON_KEY are required here. SUPABASE_ACCESS_TOKEN is
    the session token of an already signed-in user; it may be absent at this point,
    but every SupabaseMembers call needs it and raises PermissionError without it.
    """
    url = (os.environ.get("SUPABASE_URL") or "").strip().rstrip("/")
    anon_key = (os.environ.get("SUPABASE_ANON_KEY") or "").strip()
    if not url or not anon_key:
        raise RuntimeError(
            "Supabase env vars missing. Set SUPABASE_URL and SUPABASE_ANON_KEY "
            "(and optionally SUPABASE_ACCESS_TOKEN)."
        )
    return {
        "url": url,
        "api_key": anon_key,
        "access_token": (os.environ.get("SUPABASE_ACCESS_TOKEN") or "").strip() or None,
    }
