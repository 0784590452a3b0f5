"""
db.py
SQLite-backed member store + initialization (creates DB/tables, inserts default admin, etc.)
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from pathlib import Path

import config
from models import (
    Gym,
    GymSettings,
    Member,
    NotFoundError,
    PaymentMethod,
    PaymentRecord,
    StaleRecordError,
    Supplement,
)
from utils import parse_instant, to_iso

logger = logging.getLogger(__name__)

MEMBER_COLUMNS = (
    "id", "gym_id", "name", "phone", "join_date", "plan_duration_days", "expiry_date",
    "amount_paid", "username", "password_hash", "is_active", "age", "height", "weight",
    "address", "goal", "notes", "registration_payment_mode", "profile_photo", "id_proof_photo",
)


class Store:
    """
    Member / gym / settings records. Every call runs in its own connection and
    transaction, so each one is atomic on its own.
    """

    def __init__(self, db_file: Path | str | None = None):
        self.db_file = Path(db_file) if db_file else config.DB_FILE

    @contextmanager
    def get_conn(self):
        conn = sqlite3.connect(self.db_file, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def execute(self, sql: str, params: tuple = ()) -> int:
        with self.get_conn() as conn:
            cur = conn.execute(sql, params)
            return cur.lastrowid

    def fetch_one(self, sql: str, params: tuple = ()):
        with self.get_conn() as conn:
            cur = conn.execute(sql, params)
            return cur.fetchone()

    def fetch_all(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self.get_conn() as conn:
            cur = conn.execute(sql, params)
            return cur.fetchall()

    # ---------- Schema ----------

    def _create_tables(self) -> None:
        with self.get_conn() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS admin_users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    username TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS app_settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS gyms (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    manager_password_hash TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    email TEXT,
                    phone TEXT,
                    city TEXT,
                    state TEXT,
                    profile_photo TEXT
                );

                CREATE TABLE IF NOT EXISTS gym_settings (
                    gym_id TEXT PRIMARY KEY,
                    gym_name TEXT NOT NULL,
                    auto_notify_whatsapp INTEGER NOT NULL DEFAULT 0,
                    terms_and_conditions TEXT,
                    FOREIGN KEY(gym_id) REFERENCES gyms(id) ON DELETE CASCADE ON UPDATE CASCADE
                );

                CREATE TABLE IF NOT EXISTS members (
                    id TEXT PRIMARY KEY,
                    gym_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    phone TEXT NOT NULL,
                    join_date TEXT NOT NULL,
                    plan_duration_days INTEGER NOT NULL,
                    expiry_date TEXT NOT NULL,
                    amount_paid REAL NOT NULL,
                    username TEXT NOT NULL,
                    password_hash TEXT,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    age INTEGER,
                    height TEXT,
                    weight TEXT,
                    address TEXT,
                    goal TEXT,
                    notes TEXT,
                    registration_payment_mode TEXT,
                    profile_photo TEXT,
                    id_proof_photo TEXT,
                    version INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY(gym_id) REFERENCES gyms(id) ON DELETE CASCADE ON UPDATE CASCADE
                );

                CREATE TABLE IF NOT EXISTS payments (
                    id TEXT PRIMARY KEY,
                    member_id TEXT NOT NULL,
                    seq INTEGER NOT NULL,
                    date TEXT NOT NULL,
                    amount REAL NOT NULL CHECK(amount >= 0),
                    method TEXT NOT NULL CHECK(method IN ('ONLINE','OFFLINE')),
                    recorded_by TEXT,
                    FOREIGN KEY(member_id) REFERENCES members(id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS supplements (
                    id TEXT PRIMARY KEY,
                    member_id TEXT NOT NULL,
                    seq INTEGER NOT NULL,
                    product_name TEXT NOT NULL,
                    purchase_date TEXT NOT NULL,
                    price REAL NOT NULL CHECK(price >= 0),
                    end_date TEXT,
                    FOREIGN KEY(member_id) REFERENCES members(id) ON DELETE CASCADE
                );
                """
            )

    def _get_setting(self, key: str, default: str | None = None) -> str | None:
        row = self.fetch_one("SELECT value FROM app_settings WHERE key = ?", (key,))
        if row:
            return str(row["value"])
        return default

    def _set_setting(self, key: str, value: str) -> None:
        self.execute(
            """
            INSERT INTO app_settings(key, value) VALUES(?, ?)
            ON CONFLICT(key) DO UPDATE SET value=excluded.value
            """,
            (key, value),
        )

    def init_db(self, default_admin_hash: str) -> None:
        """
        Initialize the database.
        - Create tables
        - Insert default super admin if no admin exists
        - Force password change on first login
        """
        self._create_tables()

        admin = self.fetch_one("SELECT id FROM admin_users LIMIT 1")
        if not admin:
            now = datetime.utcnow().isoformat(timespec="seconds")
            self.execute(
                "INSERT INTO admin_users(username, password_hash, created_at) VALUES(?,?,?)",
                (config.DEFAULT_ADMIN_USERNAME, default_admin_hash, now),
            )
            self._set_setting("force_password_change", "1")
            logger.info("Created default super admin '%s'", config.DEFAULT_ADMIN_USERNAME)
        else:
            # ensure setting exists
            if self._get_setting("force_password_change") is None:
                self._set_setting("force_password_change", "0")

    def is_force_password_change(self) -> bool:
        return self._get_setting("force_password_change") == "1"

    def clear_force_password_change(self) -> None:
        self._set_setting("force_password_change", "0")

    # ---------- Super admins ----------

    def get_admin_by_username(self, username: str):
        return self.fetch_one("SELECT * FROM admin_users WHERE username = ?", (username,))

    def set_admin_password_hash(self, username: str, password_hash: str) -> None:
        self.execute(
            "UPDATE admin_users SET password_hash = ? WHERE username = ?",
            (password_hash, username),
        )

    # ---------- Gyms ----------

    @staticmethod
    def _row_to_gym(row) -> Gym:
        return Gym(
            id=row["id"],
            name=row["name"],
            manager_password_hash=row["manager_password_hash"],
            created_at=parse_instant(row["created_at"]),
            email=row["email"],
            phone=row["phone"],
            city=row["city"],
            state=row["state"],
            profile_photo=row["profile_photo"],
        )

    def list_gyms(self) -> list[Gym]:
        rows = self.fetch_all("SELECT * FROM gyms ORDER BY created_at ASC, id ASC")
        return [self._row_to_gym(r) for r in rows]

    def get_gym(self, gym_id: str) -> Gym:
        row = self.fetch_one("SELECT * FROM gyms WHERE id = ?", (gym_id,))
        if not row:
            raise NotFoundError(f"Gym {gym_id} not found.")
        return self._row_to_gym(row)

    def add_gym(self, gym: Gym) -> None:
        self.execute(
            """
            INSERT INTO gyms(id, name, manager_password_hash, created_at, email, phone, city, state, profile_photo)
            VALUES(?,?,?,?,?,?,?,?,?)
            """,
            (gym.id, gym.name, gym.manager_password_hash, to_iso(gym.created_at),
             gym.email, gym.phone, gym.city, gym.state, gym.profile_photo),
        )
        logger.info("Gym %s (%s) added", gym.id, gym.name)

    def update_gym(self, gym: Gym, old_id: str) -> None:
        """
        Replace a gym record; the gym id itself may change (members follow via ON UPDATE CASCADE).
        """
        with self.get_conn() as conn:
            cur = conn.execute(
                """
                UPDATE gyms SET id=?, name=?, manager_password_hash=?, created_at=?,
                    email=?, phone=?, city=?, state=?, profile_photo=?
                WHERE id=?
                """,
                (gym.id, gym.name, gym.manager_password_hash, to_iso(gym.created_at),
                 gym.email, gym.phone, gym.city, gym.state, gym.profile_photo, old_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"Gym {old_id} not found.")
        logger.info("Gym %s updated", gym.id)

    def delete_gym(self, gym_id: str) -> None:
        self.execute("DELETE FROM gyms WHERE id = ?", (gym_id,))
        logger.info("Gym %s deleted", gym_id)

    # ---------- Settings ----------

    def get_settings(self, gym_id: str) -> GymSettings:
        row = self.fetch_one("SELECT * FROM gym_settings WHERE gym_id = ?", (gym_id,))
        if row:
            return GymSettings(
                gym_id=row["gym_id"],
                gym_name=row["gym_name"],
                auto_notify_whatsapp=bool(row["auto_notify_whatsapp"]),
                terms_and_conditions=row["terms_and_conditions"],
            )
        gym = self.fetch_one("SELECT name FROM gyms WHERE id = ?", (gym_id,))
        return GymSettings(gym_id=gym_id, gym_name=gym["name"] if gym else "")

    def save_settings(self, settings: GymSettings) -> None:
        self.execute(
            """
            INSERT INTO gym_settings(gym_id, gym_name, auto_notify_whatsapp, terms_and_conditions)
            VALUES(?,?,?,?)
            ON CONFLICT(gym_id) DO UPDATE SET gym_name=excluded.gym_name,
                auto_notify_whatsapp=excluded.auto_notify_whatsapp,
                terms_and_conditions=excluded.terms_and_conditions
            """,
            (settings.gym_id, settings.gym_name, int(settings.auto_notify_whatsapp), settings.terms_and_conditions),
        )

    # ---------- Members ----------

    def _load_member(self, conn, row) -> Member:
        payments = conn.execute(
            "SELECT * FROM payments WHERE member_id = ? ORDER BY seq ASC", (row["id"],)
        ).fetchall()
        supplements = conn.execute(
            "SELECT * FROM supplements WHERE member_id = ? ORDER BY seq ASC", (row["id"],)
        ).fetchall()
        return Member(
            id=row["id"],
            name=row["name"],
            phone=row["phone"],
            gym_id=row["gym_id"],
            join_date=parse_instant(row["join_date"]),
            plan_duration_days=row["plan_duration_days"],
            expiry_date=parse_instant(row["expiry_date"]),
            amount_paid=row["amount_paid"],
            username=row["username"],
            password_hash=row["password_hash"],
            is_active=bool(row["is_active"]),
            age=row["age"],
            height=row["height"],
            weight=row["weight"],
            address=row["address"],
            goal=row["goal"],
            notes=row["notes"],
            registration_payment_mode=row["registration_payment_mode"],
            profile_photo=row["profile_photo"],
            id_proof_photo=row["id_proof_photo"],
            payment_history=tuple(
                PaymentRecord(
                    id=p["id"],
                    date=parse_instant(p["date"]),
                    amount=p["amount"],
                    method=PaymentMethod(p["method"]),
                    recorded_by=p["recorded_by"] or "",
                )
                for p in payments
            ),
            supplement_history=tuple(
                Supplement(
                    id=s["id"],
                    product_name=s["product_name"],
                    purchase_date=parse_instant(s["purchase_date"]),
                    price=s["price"],
                    end_date=parse_instant(s["end_date"]),
                )
                for s in supplements
            ),
            version=row["version"],
        )

    @staticmethod
    def _member_values(m: Member) -> tuple:
        return (
            m.id, m.gym_id, m.name, m.phone, to_iso(m.join_date), m.plan_duration_days,
            to_iso(m.expiry_date), m.amount_paid, m.username, m.password_hash, int(m.is_active),
            m.age, m.height, m.weight, m.address, m.goal, m.notes, m.registration_payment_mode,
            m.profile_photo, m.id_proof_photo,
        )

    @staticmethod
    def _write_histories(conn, m: Member) -> None:
        conn.execute("DELETE FROM payments WHERE member_id = ?", (m.id,))
        conn.execute("DELETE FROM supplements WHERE member_id = ?", (m.id,))
        conn.executemany(
            "INSERT INTO payments(id, member_id, seq, date, amount, method, recorded_by) VALUES(?,?,?,?,?,?,?)",
            [
                (p.id, m.id, seq, to_iso(p.date), p.amount, PaymentMethod(p.method).value, p.recorded_by)
                for seq, p in enumerate(m.payment_history)
            ],
        )
        conn.executemany(
            "INSERT INTO supplements(id, member_id, seq, product_name, purchase_date, price, end_date) VALUES(?,?,?,?,?,?,?)",
            [
                (s.id, m.id, seq, s.product_name, to_iso(s.purchase_date), s.price, to_iso(s.end_date))
                for seq, s in enumerate(m.supplement_history)
            ],
        )

    def list_members(self, gym_id: str) -> list[Member]:
        with self.get_conn() as conn:
            rows = conn.execute(
                "SELECT * FROM members WHERE gym_id = ? ORDER BY join_date ASC, id ASC", (gym_id,)
            ).fetchall()
            return [self._load_member(conn, r) for r in rows]

    def get_member(self, member_id: str) -> Member:
        with self.get_conn() as conn:
            row = conn.execute("SELECT * FROM members WHERE id = ?", (member_id,)).fetchone()
            if not row:
                raise NotFoundError(f"Member {member_id} not found.")
            return self._load_member(conn, row)

    def find_member_by_username(self, username: str, gym_id: str | None = None) -> Member | None:
        sql = "SELECT * FROM members WHERE username = ?"
        params: tuple = (username,)
        if gym_id:
            sql += " AND gym_id = ?"
            params += (gym_id,)
        sql += " ORDER BY join_date ASC LIMIT 1"
        with self.get_conn() as conn:
            row = conn.execute(sql, params).fetchone()
            return self._load_member(conn, row) if row else None

    def add_member(self, member: Member) -> Member:
        placeholders = ",".join("?" * len(MEMBER_COLUMNS))
        with self.get_conn() as conn:
            conn.execute(
                f"INSERT INTO members({', '.join(MEMBER_COLUMNS)}, version) VALUES({placeholders}, 0)",
                self._member_values(member),
            )
            self._write_histories(conn, member)
        logger.info("Member %s (%s) added to gym %s", member.id, member.name, member.gym_id)
        return replace(member, version=0)

    def update_member(self, member: Member) -> Member:
        """
        Replace the full member record (histories included).

        The write only applies if the stored version still matches `member.version`;
        otherwise someone else saved the member since it was read.
        """
        assignments = ", ".join(f"{c}=?" for c in MEMBER_COLUMNS[1:])
        with self.get_conn() as conn:
            cur = conn.execute(
                f"UPDATE members SET {assignments}, version=version+1 WHERE id=? AND version=?",
                self._member_values(member)[1:] + (member.id, member.version),
            )
            if cur.rowcount == 0:
                exists = conn.execute("SELECT 1 FROM members WHERE id = ?", (member.id,)).fetchone()
                if not exists:
                    logger.warning("Member %s not found for update", member.id)
                    raise NotFoundError(f"Member {member.id} not found.")
                logger.warning("Member %s changed since it was read (version %s)", member.id, member.version)
                raise StaleRecordError(f"Member {member.id} was modified by someone else. Reload and retry.")
            self._write_histories(conn, member)
        return replace(member, version=member.version + 1)

    def delete_member(self, member_id: str) -> None:
        self.execute("DELETE FROM members WHERE id = ?", (member_id,))
        logger.info("Member %s deleted", member_id)
