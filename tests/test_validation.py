import pytest

from propdesk.errors import (
    InvalidColumnType,
    InvalidEnumValue,
    InvalidIdentifier,
    ProtectedColumnViolation,
    TableNotAllowed,
)
from propdesk.services.validation import (
    ALLOWED_TABLES,
    PROTECTED_COLUMNS,
    VALID_COLUMN_TYPES,
    build_add_column,
    build_add_enum_value,
    build_drop_column,
    ensure_droppable,
    quote_literal,
    sanitize_identifier,
    validate_column_type,
    validate_enum_value,
    validate_table,
)


def test_allow_list_has_twenty_tables():
    assert len(ALLOWED_TABLES) == 20
    assert "tenants" in ALLOWED_TABLES
    assert "activity_log" in ALLOWED_TABLES


@pytest.mark.parametrize("name", ["pg_shadow", "Tenants", "tenants; DROP TABLE x", "", None, 42])
def test_validate_table_rejects_unknown(name):
    with pytest.raises(TableNotAllowed):
        validate_table(name)


def test_validate_table_message():
    with pytest.raises(TableNotAllowed) as exc:
        validate_table("secrets")
    assert exc.value.message == "Table 'secrets' is not allowed"
    assert exc.value.status_code == 400


@pytest.mark.parametrize("name", ["late_fee", "_hidden", "Col9", "a"])
def test_sanitize_identifier_accepts(name):
    assert sanitize_identifier(name) == name


@pytest.mark.parametrize("name", ["9lives", "late-fee", "x y", 'x"; DROP TABLE tenants; --', "", None])
def test_sanitize_identifier_rejects(name):
    with pytest.raises(InvalidIdentifier):
        sanitize_identifier(name)


def test_column_types():
    for t in VALID_COLUMN_TYPES:
        assert validate_column_type(t) == t
    with pytest.raises(InvalidColumnType):
        validate_column_type("varchar(255)")
    with pytest.raises(InvalidColumnType):
        validate_column_type("TEXT")


def test_enum_values():
    assert validate_enum_value("property owner") == "property owner"
    for bad in ["owner'", "1st", "", "a-b", None]:
        with pytest.raises(InvalidEnumValue):
            validate_enum_value(bad)


def test_protected_columns():
    for col in ("id", "created_at", "updated_at", "organization_id", "user_id"):
        assert col in PROTECTED_COLUMNS
        with pytest.raises(ProtectedColumnViolation) as exc:
            ensure_droppable(col)
        assert "protected column" in exc.value.message
    assert ensure_droppable("late_fee") == "late_fee"


def test_quote_literal_doubles_quotes():
    assert quote_literal("O'Brien") == "'O''Brien'"
    assert quote_literal(5) == "'5'"


def test_build_add_column_minimal():
    sql = build_add_column("invoices", "late_fee", "numeric")
    assert sql == 'ALTER TABLE "invoices" ADD COLUMN "late_fee" numeric'


def test_build_add_column_not_null_with_default_and_schema():
    sql = build_add_column("tenants", "nickname", "text", nullable=False, default_value="it's", schema="public")
    assert sql == 'ALTER TABLE public."tenants" ADD COLUMN "nickname" text NOT NULL DEFAULT \'it\'\'s\''


def test_build_add_column_ignores_empty_default():
    assert "DEFAULT" not in build_add_column("tenants", "nickname", "text", default_value="")


def test_build_add_column_validates_every_part():
    with pytest.raises(TableNotAllowed):
        build_add_column("pg_roles", "x", "text")
    with pytest.raises(InvalidIdentifier):
        build_add_column("tenants", "bad name", "text")
    with pytest.raises(InvalidColumnType):
        build_add_column("tenants", "x", "money")


def test_build_drop_column():
    assert build_drop_column("invoices", "late_fee") == 'ALTER TABLE "invoices" DROP COLUMN "late_fee"'
    with pytest.raises(ProtectedColumnViolation):
        build_drop_column("tenants", "organization_id")


def test_build_add_enum_value_is_idempotent_statement():
    sql = build_add_enum_value("app_role", "auditor", schema="public")
    assert sql == "ALTER TYPE public.\"app_role\" ADD VALUE IF NOT EXISTS 'auditor'"
