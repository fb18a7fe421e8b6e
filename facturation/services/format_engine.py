"""
Formats de numérotation des documents ("{CODE}-{YEAR}-{NUM5}", ...).

Conversion chaîne <-> tokens pour l'éditeur de format, et rendu d'un numéro
concret à partir d'un compteur. Aucune fonction ne lève : une entrée
malformée reste du texte littéral ou passe telle quelle.
"""
from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Union

from facturation.models.numbering import (
    DEFAULT_FORMAT,
    Format,
    FormatToken,
    NumberingContext,
)

FORMAT_VARIABLES = {
    "CODE": "Code de la série (ex: ART, SER)",
    "NUM5": "Numéro sur 5 chiffres (00001)",
    "NUM4": "Numéro sur 4 chiffres (0001)",
    "NUM3": "Numéro sur 3 chiffres (001)",
    "YEAR": "Année (2025)",
    "YEAR2": "Année sur 2 chiffres (25)",
    "MONTH": "Mois (01-12)",
    "TYPE": "Type de document (DEV, FACT, AV)",
}

TYPE_CODES = {"DEVIS": "DEV", "FACTURE": "FACT", "AVOIR": "AV"}

_NUM_RE = re.compile(r"^NUM(\d)$")


def type_code(document_type: Optional[str]) -> str:
    return TYPE_CODES.get((document_type or "").upper(), "")


# ---------- Chaîne <-> tokens ---------- #

def parse(fmt: Optional[str]) -> Format:
    tokens = []
    text = ""
    i = 0
    fmt = fmt or ""
    while i < len(fmt):
        if fmt[i] == "{":
            end = fmt.find("}", i)
            if end != -1:
                if text:
                    tokens.append(FormatToken.literal(text))
                    text = ""
                tokens.append(FormatToken.variable(fmt[i + 1:end]))
                i = end + 1
                continue
            # accolade non fermée : le reste est littéral
            text += fmt[i:]
            break
        text += fmt[i]
        i += 1
    if text:
        tokens.append(FormatToken.literal(text))
    return tuple(tokens)


def build(tokens: Iterable[FormatToken]) -> str:
    return "".join(
        f"{{{t.value}}}" if t.kind == "variable" else t.value
        for t in tokens
    )


# ---------- Édition ---------- #

def add_variable(tokens: Format, name: str) -> Format:
    return tuple(tokens) + (FormatToken.variable(name),)


def add_literal(tokens: Format, text: str) -> Format:
    if not text:
        return tuple(tokens)
    return tuple(tokens) + (FormatToken.literal(text),)


def remove_token(tokens: Format, index: int) -> Format:
    """Retire le token à `index`. Le résultat peut être vide, voir or_default."""
    tokens = tuple(tokens)
    if not 0 <= index < len(tokens):
        return tokens
    return tokens[:index] + tokens[index + 1:]


def or_default(tokens: Format) -> Format:
    tokens = tuple(tokens)
    return tokens if tokens else parse(DEFAULT_FORMAT)


# ---------- Rendu ---------- #

def _pad(counter: int, width: int) -> str:
    # pas de troncature : 100000 en NUM5 reste "100000"
    return str(counter).zfill(width)


def _resolve(name: str, ctx: NumberingContext) -> Optional[str]:
    m = _NUM_RE.match(name)
    if m:
        return _pad(ctx.counter, int(m.group(1)))
    if name == "CODE":
        return ctx.code
    if name == "YEAR":
        return str(ctx.year).zfill(4)
    if name == "YEAR2":
        return str(ctx.year).zfill(4)[-2:]
    if name == "MONTH":
        return str(ctx.month).zfill(2)
    if name == "TYPE":
        return ctx.type
    return None


def preview(
    tokens: Iterable[FormatToken],
    context: Union[NumberingContext, Dict[str, Any], None] = None,
    **values: Any,
) -> str:
    """
    Substitue chaque variable. `values` complète/écrase le contexte
    (code=, counter=, year=, month=, type=). Les variables inconnues
    sont rendues telles quelles ("{FOO}").
    """
    if isinstance(context, dict):
        context = NumberingContext(**context)
    ctx = context or NumberingContext()
    if values:
        ctx = ctx.model_copy(update=values)
    out = []
    for t in tokens:
        if t.kind != "variable":
            out.append(t.value)
            continue
        if t.value in FORMAT_VARIABLES:
            resolved = _resolve(t.value, ctx)
        else:
            resolved = None
        out.append(resolved if resolved is not None else f"{{{t.value}}}")
    return "".join(out)


def render_number(
    fmt: str,
    counter: int,
    code: str,
    document_type: Optional[str],
    when: Optional[datetime] = None,
) -> str:
    when = when or datetime.now()
    ctx = NumberingContext(
        code=code,
        counter=counter,
        year=when.year,
        month=when.month,
        type=type_code(document_type),
    )
    return preview(parse(fmt), ctx)
