# race_repo.py
# Developer note:
# - SQLite DB is the single source of truth (SSOT) for persisted race data.
# - session_id / team_id / cyclist_id are canonical strings (see schema.py).
# - Score fields (synergy, points, stamina, points_earned) are written only by
#   stage_resolution; decisions are written only by ledger.service.
"""
RaceRepository: persisted-data SSOT (SQLite)

Usage (CLI):
  python race_repo.py init --db <db_path>
  python race_repo.py create-session --db <db_path> --title "Workshop A" --trainer coach@example.com
  python race_repo.py resolve-stage --db <db_path> --session <session_id> --stage 4
  python race_repo.py standings --db <db_path> --session <session_id>
  python race_repo.py validate --db <db_path>

Python:
  from race_repo import RaceRepo
  repo = RaceRepo("<db_path>")
  repo.init_db()
  team, cyclists = repo.read_home_team_and_cyclists(session_id)
"""

from __future__ import annotations

import argparse
import contextlib
import json
import logging
import sqlite3
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import config
import game_time
from schema import (
    SCHEMA_VERSION,
    normalize_cyclist_id,
    normalize_session_id,
    normalize_stage_number,
    normalize_status,
    normalize_team_id,
)
from ledger import repo as ledger_repo
from ledger.types import DecisionRecord


logger = logging.getLogger(__name__)
_WARN_COUNTS: Dict[str, int] = {}


def _warn_limited(code: str, msg: str, *, limit: int = 5) -> None:
    n = _WARN_COUNTS.get(code, 0)
    if n < limit:
        logger.warning("%s %s", code, msg)
    _WARN_COUNTS[code] = n + 1


def _utc_now_iso() -> str:
    return game_time.now_utc_iso()


def _json_dumps(obj: Any) -> str:
    return json.dumps(
        obj,
        ensure_ascii=False,
        separators=(",", ":"),
        sort_keys=True,
        default=str,
    )


def _clamp_int(value: Any, lo: int, hi: int, *, code: str) -> int:
    """Clamp a persisted integer into [lo, hi], warning when the row was out of range."""
    try:
        v = int(value)
    except (TypeError, ValueError):
        _warn_limited(code, f"value={value!r} (not an int; using {lo})")
        return int(lo)
    if v < lo or v > hi:
        _warn_limited(code, f"value={v} out of range [{lo}, {hi}]")
        return int(min(hi, max(lo, v)))
    return v


# ----------------------------
# Row types
# ----------------------------

@dataclass(frozen=True)
class SessionRow:
    session_id: str
    title: str
    trainer_id: str
    cyclists_count: int
    current_stage: int
    status: str
    stage_locked: bool
    multiplier_active: bool
    current_multiplier: float
    reflection_active: bool

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "SessionRow":
        return cls(
            session_id=str(row["session_id"]),
            title=str(row["title"]),
            trainer_id=str(row["trainer_id"]),
            cyclists_count=int(row["cyclists_count"]),
            current_stage=int(row["current_stage"]),
            status=str(row["status"]),
            stage_locked=bool(row["stage_locked"]),
            multiplier_active=bool(row["multiplier_active"]),
            current_multiplier=float(row["current_multiplier"]),
            reflection_active=bool(row["reflection_active"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TeamRow:
    team_id: str
    session_id: str
    name: str
    type: str
    synergy_score: int
    total_points: int

    @property
    def is_home(self) -> bool:
        return self.type == config.HOME_TEAM_TYPE

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "TeamRow":
        return cls(
            team_id=str(row["team_id"]),
            session_id=str(row["session_id"]),
            name=str(row["name"]),
            type=str(row["type"]),
            synergy_score=_clamp_int(row["synergy_score"], config.MIN_SYNERGY, config.MAX_SYNERGY, code="SYNERGY_OUT_OF_RANGE"),
            total_points=int(row["total_points"] or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CyclistRow:
    cyclist_id: str
    team_id: str
    name: str
    character_role: str
    stamina: int
    current_points: int

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "CyclistRow":
        return cls(
            cyclist_id=str(row["cyclist_id"]),
            team_id=str(row["team_id"]),
            name=str(row["name"]),
            character_role=str(row["character_role"]),
            stamina=_clamp_int(row["stamina"], config.MIN_STAMINA, config.MAX_STAMINA, code="STAMINA_OUT_OF_RANGE"),
            current_points=int(row["current_points"] or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ----------------------------
# Repository
# ----------------------------

class RaceRepo:
    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON;")
        self._conn.execute("PRAGMA journal_mode = WAL;")
        # Nested transaction support (SAVEPOINT) for callers that compose repo methods.
        self._savepoint_seq = 0

    def close(self) -> None:
        try:
            self._conn.close()
        except Exception:
            pass

    @contextlib.contextmanager
    def transaction(self, *, immediate: bool = False):
        """
        Atomic transaction helper.

        Supports nesting via SAVEPOINT:
        - outermost: BEGIN ... COMMIT/ROLLBACK
        - nested: SAVEPOINT ... RELEASE (or ROLLBACK TO + RELEASE on error)

        immediate=True takes the write lock up front (BEGIN IMMEDIATE), so a
        read-then-claim sequence cannot interleave with another connection.
        """
        cur = self._conn.cursor()
        nested = bool(getattr(self._conn, "in_transaction", False))
        sp_name = None
        try:
            if nested:
                self._savepoint_seq += 1
                sp_name = f"sp_{self._savepoint_seq}"
                cur.execute(f"SAVEPOINT {sp_name};")
            else:
                self._conn.execute("BEGIN IMMEDIATE;" if immediate else "BEGIN;")

            yield cur

            if nested and sp_name:
                cur.execute(f"RELEASE SAVEPOINT {sp_name};")
            else:
                self._conn.commit()
        except Exception:
            if nested and sp_name:
                # Roll back to the savepoint only; do NOT rollback the outer transaction here.
                try:
                    cur.execute(f"ROLLBACK TO SAVEPOINT {sp_name};")
                finally:
                    cur.execute(f"RELEASE SAVEPOINT {sp_name};")
            else:
                self._conn.rollback()
            raise
        finally:
            try:
                cur.close()
            except Exception:
                pass

    # ------------------------
    # Schema
    # ------------------------

    def _ensure_table_columns(self, cur: sqlite3.Cursor, table: str, columns: Mapping[str, str]) -> None:
        """SQLite has no ADD COLUMN IF NOT EXISTS; check PRAGMA table_info first."""
        rows = cur.execute(f"PRAGMA table_info({table});").fetchall()
        existing = {r["name"] for r in rows}
        for col, ddl in columns.items():
            if col in existing:
                continue
            cur.execute(f"ALTER TABLE {table} ADD COLUMN {col} {ddl};")

    def init_db(self) -> None:
        """Apply SQLite schema (DDL + migrations) via db_schema."""
        from db_schema import apply_schema

        now = _utc_now_iso()
        with self.transaction() as cur:
            apply_schema(
                cur,
                now=now,
                schema_version=SCHEMA_VERSION,
                ensure_columns=self._ensure_table_columns,
            )

    # ------------------------
    # Reads
    # ------------------------

    def get_session(self, session_id: str) -> SessionRow:
        sid = normalize_session_id(session_id)
        row = self._conn.execute("SELECT * FROM sessions WHERE session_id=?;", (str(sid),)).fetchone()
        if not row:
            raise KeyError(f"session not found: {session_id}")
        return SessionRow.from_row(row)

    def list_sessions(self) -> List[SessionRow]:
        rows = self._conn.execute("SELECT * FROM sessions ORDER BY created_at ASC, session_id ASC;").fetchall()
        return [SessionRow.from_row(r) for r in rows]

    def list_teams(self, session_id: str) -> List[TeamRow]:
        sid = normalize_session_id(session_id)
        rows = self._conn.execute(
            "SELECT * FROM teams WHERE session_id=? ORDER BY type ASC;",
            (str(sid),),
        ).fetchall()
        return [TeamRow.from_row(r) for r in rows]

    def read_home_team_and_cyclists(self, session_id: str) -> Tuple[TeamRow, List[CyclistRow]]:
        """Return the human-controlled team and its riders (seating order)."""
        sid = normalize_session_id(session_id)
        row = self._conn.execute(
            "SELECT * FROM teams WHERE session_id=? AND type=?;",
            (str(sid), config.HOME_TEAM_TYPE),
        ).fetchone()
        if not row:
            raise KeyError(f"home team not found for session: {session_id}")
        team = TeamRow.from_row(row)
        return team, self.list_cyclists(team.team_id)

    def read_ai_teams(self, session_id: str) -> List[TeamRow]:
        """Return the AI-controlled teams (every non-home faction) in faction order."""
        sid = normalize_session_id(session_id)
        placeholders = ",".join(["?"] * len(config.AI_TEAM_TYPES))
        rows = self._conn.execute(
            f"SELECT * FROM teams WHERE session_id=? AND type IN ({placeholders});",
            (str(sid), *config.AI_TEAM_TYPES),
        ).fetchall()
        order = {t: i for i, t in enumerate(config.AI_TEAM_TYPES)}
        teams = [TeamRow.from_row(r) for r in rows]
        teams.sort(key=lambda t: order.get(t.type, len(order)))
        return teams

    def list_cyclists(self, team_id: str) -> List[CyclistRow]:
        tid = normalize_team_id(team_id)
        rows = self._conn.execute("SELECT * FROM cyclists WHERE team_id=?;", (str(tid),)).fetchall()
        order = {r: i for i, r in enumerate(config.CYCLIST_ROLES)}
        cyclists = [CyclistRow.from_row(r) for r in rows]
        cyclists.sort(key=lambda c: (order.get(c.character_role, len(order)), c.cyclist_id))
        return cyclists

    def get_cyclist(self, cyclist_id: str) -> CyclistRow:
        cid = normalize_cyclist_id(cyclist_id)
        row = self._conn.execute("SELECT * FROM cyclists WHERE cyclist_id=?;", (str(cid),)).fetchone()
        if not row:
            raise KeyError(f"cyclist not found: {cyclist_id}")
        return CyclistRow.from_row(row)

    def get_session_id_by_cyclist(self, cyclist_id: str) -> str:
        cid = normalize_cyclist_id(cyclist_id)
        row = self._conn.execute(
            """
            SELECT t.session_id
            FROM cyclists c
            JOIN teams t ON t.team_id = c.team_id
            WHERE c.cyclist_id=?;
            """,
            (str(cid),),
        ).fetchone()
        if not row:
            raise KeyError(f"cyclist not found: {cyclist_id}")
        return str(row["session_id"])

    def read_decisions(self, session_id: str, stage_number: int) -> List[DecisionRecord]:
        sid = normalize_session_id(session_id)
        stage = normalize_stage_number(stage_number)
        cur = self._conn.cursor()
        try:
            return ledger_repo.list_stage_decisions(cur, session_id=str(sid), stage_number=stage)
        finally:
            cur.close()

    # ------------------------
    # Writes (score fields: stage_resolution only)
    # ------------------------

    def write_cyclist(self, cyclist_id: str, *, points: int, stamina: int) -> None:
        """Persist a rider's cumulative points and stamina (stamina clamped to bounds)."""
        cid = normalize_cyclist_id(cyclist_id)
        st = int(min(config.MAX_STAMINA, max(config.MIN_STAMINA, int(stamina))))
        with self.transaction() as cur:
            cur.execute(
                "UPDATE cyclists SET current_points=?, stamina=?, updated_at=? WHERE cyclist_id=?;",
                (int(points), st, _utc_now_iso(), str(cid)),
            )
            if cur.rowcount == 0:
                raise KeyError(f"cyclist not found: {cyclist_id}")

    def write_decision_points_earned(self, cyclist_id: str, session_id: str, stage_number: int, points: int) -> None:
        cid = normalize_cyclist_id(cyclist_id)
        sid = normalize_session_id(session_id)
        stage = normalize_stage_number(stage_number)
        with self.transaction() as cur:
            n = ledger_repo.set_points_earned(
                cur,
                cyclist_id=str(cid),
                session_id=str(sid),
                stage_number=stage,
                points=int(points),
            )
            if n == 0:
                raise KeyError(f"decision not found: {cyclist_id}/{session_id}/{stage}")

    def write_team(self, team_id: str, *, points: int, synergy: int) -> None:
        """Persist a team's cumulative points and synergy (synergy clamped to bounds)."""
        tid = normalize_team_id(team_id)
        syn = int(min(config.MAX_SYNERGY, max(config.MIN_SYNERGY, int(synergy))))
        with self.transaction() as cur:
            cur.execute(
                "UPDATE teams SET total_points=?, synergy_score=?, updated_at=? WHERE team_id=?;",
                (int(points), syn, _utc_now_iso(), str(tid)),
            )
            if cur.rowcount == 0:
                raise KeyError(f"team not found: {team_id}")

    def write_session_status(self, session_id: str, status: str) -> None:
        self.update_session(session_id, status=normalize_status(status))

    def update_session(self, session_id: str, **fields: Any) -> None:
        """Update whitelisted session columns (lifecycle flows + status)."""
        allowed = {
            "current_stage",
            "status",
            "stage_locked",
            "multiplier_active",
            "current_multiplier",
            "reflection_active",
        }
        unknown = set(fields) - allowed
        if unknown:
            raise ValueError(f"update_session: unsupported fields {sorted(unknown)}")
        if not fields:
            return
        sid = normalize_session_id(session_id)
        cols = sorted(fields)
        values: List[Any] = []
        for col in cols:
            v = fields[col]
            if col in {"stage_locked", "multiplier_active", "reflection_active"}:
                v = 1 if v else 0
            elif col == "current_stage":
                v = normalize_stage_number(v)
            elif col == "status":
                v = normalize_status(v)
            elif col == "current_multiplier":
                v = float(v)
            values.append(v)
        assignments = ", ".join(f"{c}=?" for c in cols)
        with self.transaction() as cur:
            cur.execute(
                f"UPDATE sessions SET {assignments}, updated_at=? WHERE session_id=?;",
                (*values, _utc_now_iso(), str(sid)),
            )
            if cur.rowcount == 0:
                raise KeyError(f"session not found: {session_id}")

    # ------------------------
    # Integrity
    # ------------------------

    def validate_integrity(self) -> None:
        """Fail-loud structural checks over every session in the store."""
        errors: List[str] = []
        for sess in self.list_sessions():
            teams = self.list_teams(sess.session_id)
            types = sorted(t.type for t in teams)
            if types != sorted(config.ALL_TEAM_TYPES):
                errors.append(f"{sess.session_id}: expected teams {sorted(config.ALL_TEAM_TYPES)}, got {types}")
                continue
            home = next(t for t in teams if t.is_home)
            cyclists = self.list_cyclists(home.team_id)
            if not 1 <= len(cyclists) <= config.TEAM_SIZE:
                errors.append(f"{sess.session_id}: home team has {len(cyclists)} cyclists")
            dupes = self._conn.execute(
                """
                SELECT cyclist_id, stage_number, COUNT(*) AS n
                FROM decisions_log
                WHERE session_id=?
                GROUP BY cyclist_id, stage_number
                HAVING n > 1;
                """,
                (sess.session_id,),
            ).fetchall()
            for d in dupes:
                errors.append(f"{sess.session_id}: duplicate decisions for {d['cyclist_id']} stage {d['stage_number']}")
        if errors:
            raise ValueError("Integrity check failed:\n" + "\n".join(errors))

    # ------------------------
    # Convenience
    # ------------------------

    def __enter__(self) -> "RaceRepo":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


# ----------------------------
# CLI
# ----------------------------

def _cmd_init(args) -> None:
    with RaceRepo(args.db) as repo:
        repo.init_db()
    print(f"OK: initialized {args.db}")


def _cmd_create_session(args) -> None:
    from sessions.bootstrap import create_game_session

    with RaceRepo(args.db) as repo:
        repo.init_db()
        created = create_game_session(repo, title=args.title, trainer_id=args.trainer, cyclists_count=args.cyclists)
    print(_json_dumps(created))


def _cmd_resolve_stage(args) -> None:
    from stage_resolution import resolve_stage

    with RaceRepo(args.db) as repo:
        result = resolve_stage(repo, session_id=args.session, stage_number=args.stage)
    print(_json_dumps(result.to_dict()))


def _cmd_standings(args) -> None:
    from sessions.standings import rank_teams

    with RaceRepo(args.db) as repo:
        print(_json_dumps(rank_teams(repo.list_teams(args.session))))


def _cmd_validate(args) -> None:
    with RaceRepo(args.db) as repo:
        repo.validate_integrity()
    print(f"OK: validation passed for {args.db}")


def main(argv: Optional[Sequence[str]] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    p = argparse.ArgumentParser(description="RaceRepo (SQLite single source of truth)")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_init = sub.add_parser("init", help="initialize DB schema")
    p_init.add_argument("--db", required=True, help="path to sqlite db file")
    p_init.set_defaults(func=_cmd_init)

    p_new = sub.add_parser("create-session", help="create a session with its teams and riders")
    p_new.add_argument("--db", required=True, help="path to sqlite db file")
    p_new.add_argument("--title", required=True, help="session title")
    p_new.add_argument("--trainer", required=True, help="trainer id (email)")
    p_new.add_argument("--cyclists", type=int, default=config.TEAM_SIZE, help="home riders (1..4)")
    p_new.set_defaults(func=_cmd_create_session)

    p_res = sub.add_parser("resolve-stage", help="resolve one stage of a session")
    p_res.add_argument("--db", required=True, help="path to sqlite db file")
    p_res.add_argument("--session", required=True, help="session id")
    p_res.add_argument("--stage", type=int, required=True, help="stage number (1..10)")
    p_res.set_defaults(func=_cmd_resolve_stage)

    p_std = sub.add_parser("standings", help="print ranked teams for a session")
    p_std.add_argument("--db", required=True, help="path to sqlite db file")
    p_std.add_argument("--session", required=True, help="session id")
    p_std.set_defaults(func=_cmd_standings)

    p_val = sub.add_parser("validate", help="validate DB integrity")
    p_val.add_argument("--db", required=True, help="path to sqlite db file")
    p_val.set_defaults(func=_cmd_validate)

    args = p.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
