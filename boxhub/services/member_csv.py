"""
Member CSV import and export.

Exports are comma separated UTF-8 with a BOM so spreadsheet tools pick the
right encoding. Imports accept French or English headers and either `,` or
`;` as delimiter.
"""

import csv
import io
import logging
import unicodedata
import uuid
from datetime import date, datetime
from typing import Optional, Dict, Any, List

from pydantic import ValidationError
from sqlalchemy.orm import Session

from boxhub.db import schemas
from boxhub.db.repositories import members as members_repo

logger = logging.getLogger(__name__)

UTF8_BOM = '\ufeff'

EXPORT_COLUMNS = [
    ('member_number', 'Numero'),
    ('first_name', 'Prenom'),
    ('last_name', 'Nom'),
    ('email', 'Email'),
    ('phone', 'Telephone'),
    ('birth_date', 'Date de naissance'),
    ('gender', 'Genre'),
    ('status', 'Statut'),
    ('joined_at', 'Date inscription'),
]

HEADER_ALIASES = {
    'first_name': ('prenom', 'first_name', 'firstname'),
    'last_name': ('nom', 'last_name', 'lastname', 'nom_de_famille'),
    'email': ('email', 'e-mail', 'mail', 'courriel'),
    'phone': ('telephone', 'phone', 'tel', 'portable'),
    'birth_date': ('date_naissance', 'date_de_naissance', 'birth_date', 'birthdate', 'naissance'),
    'gender': ('genre', 'gender', 'sexe'),
    'member_number': ('numero', 'member_number', 'numero_adherent', 'n_adherent'),
}

GENDER_ALIASES = {
    'homme': 'male', 'h': 'male', 'm': 'male', 'male': 'male',
    'femme': 'female', 'f': 'female', 'female': 'female',
    'autre': 'other', 'other': 'other',
}

DATE_FORMATS = ('%Y-%m-%d', '%d/%m/%Y', '%d-%m-%Y')

TEMPLATE_ROWS = [
    ['prenom', 'nom', 'email', 'telephone', 'date_naissance', 'genre', 'numero'],
    ['Jean', 'Dupont', 'jean.dupont@example.com', '0612345678', '15/03/1990', 'homme', 'A001'],
]


def _normalize_header(value: str) -> str:
    value = unicodedata.normalize('NFKD', value.strip().lower())
    value = ''.join(ch for ch in value if not unicodedata.combining(ch))
    return value.replace(' ', '_')


def _format(value) -> str:
    if value is None:
        return ''
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def export_members_csv(db: Session, organization_id: uuid.UUID, status: Optional[str] = None) -> str:
    members = members_repo.get_all_members(db, organization_id, status=status)
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator='\n')
    writer.writerow([label for _, label in EXPORT_COLUMNS])
    for member in members:
        writer.writerow([_format(getattr(member, field)) for field, _ in EXPORT_COLUMNS])
    return UTF8_BOM + buffer.getvalue()


def import_template_csv() -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator='\n')
    writer.writerows(TEMPLATE_ROWS)
    return UTF8_BOM + buffer.getvalue()


def parse_date(value: str) -> Optional[date]:
    value = (value or '').strip()
    if not value:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def parse_gender(value: str) -> Optional[str]:
    return GENDER_ALIASES.get((value or '').strip().lower())


def _map_headers(header: List[str]) -> Dict[str, int]:
    normalized = [_normalize_header(h) for h in header]
    mapping = {}
    for field, aliases in HEADER_ALIASES.items():
        for index, name in enumerate(normalized):
            if name in aliases:
                mapping[field] = index
                break
    return mapping


def parse_members_csv(content: str) -> Dict[str, Any]:
    """Parse CSV text into member payloads. Returns rows as (line number, fields) pairs plus per-line errors."""
    content = content.lstrip(UTF8_BOM)
    lines = content.splitlines()
    if not lines:
        return {'rows': [], 'errors': ['Fichier vide'], 'total': 0}
    delimiter = ';' if lines[0].count(';') > lines[0].count(',') else ','
    reader = csv.reader(io.StringIO(content), delimiter=delimiter)

    header = next(reader, None)
    mapping = _map_headers(header or [])
    if 'first_name' not in mapping or 'last_name' not in mapping:
        return {'rows': [], 'errors': ['Colonnes prenom et nom introuvables'], 'total': 0}

    rows = []
    errors = []
    total = 0
    for line_number, values in enumerate(reader, start=2):
        if not any(v.strip() for v in values):
            continue
        total += 1

        def cell(field):
            index = mapping.get(field)
            if index is None or index >= len(values):
                return ''
            return values[index].strip()

        first_name, last_name = cell('first_name'), cell('last_name')
        if not first_name or not last_name:
            errors.append(f"Ligne {line_number}: prenom et nom requis")
            continue
        rows.append((line_number, {
            'first_name': first_name,
            'last_name': last_name,
            'email': cell('email').lower() or None,
            'phone': cell('phone') or None,
            'birth_date': parse_date(cell('birth_date')),
            'gender': parse_gender(cell('gender')),
            'member_number': cell('member_number') or None,
        }))
    return {'rows': rows, 'errors': errors, 'total': total}


def import_members_csv(db: Session, organization_id: uuid.UUID, content: str) -> Dict[str, Any]:
    parsed = parse_members_csv(content)
    errors = list(parsed['errors'])
    imported = 0
    for line_number, data in parsed['rows']:
        try:
            payload = schemas.MemberCreate(**data)
            members_repo.create_member(db, organization_id, payload, commit=False)
            imported += 1
        except ValidationError as e:
            errors.append(f"Ligne {line_number}: {e.errors()[0]['msg']}")
    db.commit()
    logger.info("Imported %d members into org %s (%d errors)", imported, organization_id, len(errors))
    return {'total': parsed['total'], 'imported': imported, 'errors': errors}
