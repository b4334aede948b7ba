"""
Optional Postgres sink: upsert the collected Bugcrowd inventory into the
shared programs / scopes tables (platform='bugcrowd').

external_id is the program path (e.g. /engagements/acme), which is the
only stable identifier the listing exposes.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

import psycopg
from psycopg.types.json import Jsonb

from bcscope.scope import ProgramData, ScopeEntry
from bcscope.sync_common import clean_identifier, log, normalize_asset_type

PLATFORM = "bugcrowd"


@dataclass
class StoreCounters:
    programs_upserted: int = 0
    scopes_upserted: int = 0
    scopes_skipped: int = 0


def ensure_schema(conn) -> None:
    """Non-destructive: only adds the columns this sync needs."""
    with conn.cursor() as cur:
        cur.execute("ALTER TABLE scopes ADD COLUMN IF NOT EXISTS in_scope BOOLEAN;")
        cur.execute("ALTER TABLE scopes ADD COLUMN IF NOT EXISTS category TEXT;")
    conn.commit()


def program_handle(pdata: ProgramData) -> str:
    return pdata.url.rstrip("/").rsplit("/", 1)[-1]


def program_external_id(pdata: ProgramData) -> str:
    return pdata.url.split("bugcrowd.com", 1)[-1] or pdata.url


def upsert_program(cur, pdata: ProgramData) -> None:
    cur.execute(
        """
        INSERT INTO programs(
          platform, external_id, handle, name,
          offers_bounties, currency, policy, raw_json,
          first_seen_at, last_seen_at
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, now(), now())
        ON CONFLICT (platform, external_id)
        DO UPDATE SET
          handle=EXCLUDED.handle,
          name=EXCLUDED.name,
          raw_json=EXCLUDED.raw_json,
          last_seen_at=now();
        """,
        (
            PLATFORM,
            program_external_id(pdata),
            program_handle(pdata),
            pdata.name,
            None,
            None,
            None,
            Jsonb(pdata.to_dict(include_oos=True)),
        ),
    )


def scope_identifier(entry: ScopeEntry) -> Tuple[str, str]:
    asset_type = normalize_asset_type(entry.category, entry.target)
    return asset_type, clean_identifier(asset_type, entry.target)


def upsert_scope(cur, external_id: str, entry: ScopeEntry, in_scope: bool) -> bool:
    asset_type, identifier = scope_identifier(entry)
    if not identifier:
        return False

    cur.execute(
        """
        INSERT INTO scopes(
          platform, program_external_id, asset_type, identifier,
          eligible_for_bounty, instruction, raw_json, in_scope, category,
          first_seen_at, last_seen_at
        )
        VALUES (%s,%s,%s,%s,%s,%s,%s,%s,%s,now(),now())
        ON CONFLICT (platform, program_external_id, identifier)
        DO UPDATE SET
          asset_type=EXCLUDED.asset_type,
          instruction=EXCLUDED.instruction,
          raw_json=EXCLUDED.raw_json,
          in_scope=EXCLUDED.in_scope,
          category=EXCLUDED.category,
          last_seen_at=now();
        """,
        (
            PLATFORM,
            external_id,
            asset_type,
            identifier,
            None,  # bounty eligibility is not exposed by either scope representation
            entry.description or None,
            Jsonb(entry.to_dict()),
            bool(in_scope),
            entry.category or None,
        ),
    )
    return True


def store_programs(conn, programs: List[ProgramData]) -> StoreCounters:
    c = StoreCounters()
    with conn.cursor() as cur:
        for pdata in programs:
            upsert_program(cur, pdata)
            c.programs_upserted += 1
            ext_id = program_external_id(pdata)
            # one row per identifier: in-scope rows are written first and win
            seen = set()
            for entries, in_scope in ((pdata.in_scope, True), (pdata.out_of_scope, False)):
                for entry in entries:
                    _, identifier = scope_identifier(entry)
                    if identifier in seen:
                        c.scopes_skipped += 1
                        continue
                    seen.add(identifier)
                    if upsert_scope(cur, ext_id, entry, in_scope):
                        c.scopes_upserted += 1
                    else:
                        c.scopes_skipped += 1
    conn.commit()
    return c


def sync_to_db(db_dsn: Optional[str], programs: List[ProgramData]) -> Optional[StoreCounters]:
    if not db_dsn:
        return None
    with psycopg.connect(db_dsn) as conn:
        ensure_schema(conn)
        c = store_programs(conn, programs)
    log(f"[DB] programs_upserted={c.programs_upserted} scopes_upserted={c.scopes_upserted} "
        f"scopes_skipped={c.scopes_skipped}")
    return c
