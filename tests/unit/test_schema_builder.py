"""
Tests for squasher.schema.builder module.
"""

import textwrap
from unittest.mock import MagicMock, patch

import pytest
import sqlalchemy as sa
from sqlalchemy.dialects import mysql, postgresql, sqlite

from squasher.exceptions import SchemaError
from squasher.schema import Blueprint, Migration, SchemaBuilder, load_migration, raw
from squasher.schema.builder import Raw, default_enum_name, default_index_name, server_default


class TestHelpers:
    """Test naming and default helpers."""

    def test_default_index_name(self):
        """Test conventional index names."""
        assert default_index_name("users", ["email"], "unique") == "users_email_unique"
        assert default_index_name("Audit-Log", ["a.b", "c"], "index") == "audit_log_a_b_c_index"

    def test_default_enum_name(self):
        """Test the conventional enum type name."""
        assert default_enum_name("posts", "status") == "posts_status"

    def test_raw(self):
        """Test the raw SQL marker."""
        assert raw("CURRENT_TIMESTAMP") == Raw("CURRENT_TIMESTAMP")

    def test_server_default_translation(self):
        """Test translation of defaults into server defaults."""
        assert server_default(raw("now()")).text == "now()"
        assert server_default(None).text == "NULL"
        assert server_default(7).text == "7"
        assert server_default(1.5).text == "1.5"
        assert server_default("draft") == "draft"
        assert isinstance(server_default(True), type(sa.true()))
        assert isinstance(server_default(False), type(sa.false()))


class TestBlueprint:
    """Test blueprint collection."""

    def test_columns_are_not_null_by_default(self):
        """Test that columns are NOT NULL unless marked."""
        blueprint = Blueprint("users")
        column = blueprint.string("name").to_column()
        assert column.nullable is False
        assert column.type.length == 255

    def test_id_is_big_increments(self):
        """Test that id() is an unsigned big integer identity."""
        blueprint = Blueprint("users")
        column = blueprint.id()
        assert (column.kind, column.is_unsigned, column.is_primary, column.is_autoincrement) == (
            "big_integer", True, True, True
        )

    def test_morphs(self):
        """Test the polymorphic column pair and its index."""
        blueprint = Blueprint("comments")
        blueprint.morphs("commentable")
        assert [c.name for c in blueprint.columns] == ["commentable_type", "commentable_id"]
        assert blueprint.columns[1].kind == "big_integer"
        assert blueprint.indexes[0].columns == ("commentable_type", "commentable_id")
        assert blueprint.indexes[0].name == "comments_commentable_type_commentable_id_index"

    def test_nullable_uuid_morphs_without_index(self):
        """Test nullable UUID morphs without an index."""
        blueprint = Blueprint("images")
        blueprint.nullable_uuid_morphs("imageable", index=False)
        assert [c.kind for c in blueprint.columns] == ["string", "uuid"]
        assert all(c.is_nullable for c in blueprint.columns)
        assert blueprint.indexes == []

    def test_conventions(self):
        """Test remember_token, timestamps and soft deletes."""
        blueprint = Blueprint("users")
        blueprint.remember_token()
        blueprint.timestamps_tz()
        blueprint.soft_deletes()
        kinds = [(c.name, c.kind, c.is_nullable) for c in blueprint.columns]
        assert kinds == [
            ("remember_token", "string", True),
            ("created_at", "timestamp_tz", True),
            ("updated_at", "timestamp_tz", True),
            ("deleted_at", "timestamp", True),
        ]
        assert blueprint.columns[0].params["length"] == 100

    def test_inline_unique_registers_index(self):
        """Test that an inline unique adds an index."""
        blueprint = Blueprint("users")
        blueprint.string("email").unique()
        assert blueprint.indexes[0].unique is True
        assert blueprint.indexes[0].name == "users_email_unique"

    def test_geometry_methods(self):
        """Test geometry column methods."""
        blueprint = Blueprint("places")
        blueprint.point("location")
        assert blueprint.columns[0].kind == "point"
        assert blueprint.columns[0].column_type().get_col_spec() == "POINT"

    def test_unknown_method(self):
        """Test that unknown methods raise AttributeError."""
        with pytest.raises(AttributeError):
            Blueprint("places").hexagon("x")

    def test_is_empty(self):
        """Test empty blueprint detection."""
        blueprint = Blueprint("users")
        assert blueprint.is_empty()
        blueprint.drop_column("legacy")
        assert not blueprint.is_empty()


class TestColumnTypes:
    """Test SQLAlchemy type selection."""

    def test_unsigned_is_mysql_only(self):
        """Test that unsigned only affects MySQL."""
        type_ = Blueprint("users").unsigned_big_integer("user_id").column_type()
        assert type_.compile(dialect=mysql.dialect()) == "BIGINT UNSIGNED"
        assert type_.compile(dialect=sqlite.dialect()) == "BIGINT"

    def test_identity_is_sqlite_rowid(self):
        """Test that the identity column aliases the SQLite rowid."""
        type_ = Blueprint("users").id().column_type()
        assert type_.compile(dialect=sqlite.dialect()) == "INTEGER"

    def test_enum_with_values(self):
        """Test an enum with values."""
        type_ = Blueprint("posts").enum("status", ["draft", "live"]).column_type()
        assert isinstance(type_, sa.Enum)
        assert type_.enums == ["draft", "live"]
        assert type_.name == "posts_status"

    def test_enum_is_a_named_postgresql_type(self):
        """Test that enums are named PostgreSQL types created separately."""
        column = Blueprint("posts").enum("status", ["draft", "live"])
        assert column.column_type().compile(dialect=postgresql.dialect()) == "posts_status"
        native = column.native_enum()
        assert native.name == "posts_status"
        assert native.create_type is False

    def test_enum_type_name(self):
        """Test overriding the enum type name."""
        column = Blueprint("posts").enum("status", ["draft", "live"], type_name="post_status")
        assert column.enum_type_name() == "post_status"
        assert column.column_type().compile(dialect=postgresql.dialect()) == "post_status"

    def test_enum_without_values_falls_back_to_string(self):
        """Test that an enum without values is a string."""
        column = Blueprint("posts").enum("status", [])
        type_ = column.column_type()
        assert isinstance(type_, sa.String)
        assert type_.length == 255
        assert column.native_enum() is None

    def test_decimal(self):
        """Test decimal precision and scale."""
        type_ = Blueprint("products").decimal("price", 10, 2).column_type()
        assert (type_.precision, type_.scale) == (10, 2)

    def test_float_without_size(self):
        """Test that an unsized float is single precision."""
        type_ = Blueprint("readings").float("ratio").column_type()
        assert type_.compile(dialect=postgresql.dialect()) == "REAL"
        assert type_.compile(dialect=sqlite.dialect()) == "REAL"
        assert type_.compile(dialect=mysql.dialect()) == "FLOAT"

    def test_float_with_size_is_mysql_only(self):
        """Test that float sizes only affect MySQL."""
        type_ = Blueprint("readings").float("ratio", 8, 2).column_type()
        assert type_.compile(dialect=mysql.dialect()) == "FLOAT(8, 2)"
        assert type_.compile(dialect=postgresql.dialect()) == "REAL"

    def test_double(self):
        """Test double precision types."""
        type_ = Blueprint("readings").double("value").column_type()
        assert type_.compile(dialect=postgresql.dialect()) == "DOUBLE PRECISION"
        assert type_.compile(dialect=mysql.dialect()) == "DOUBLE"

    def test_timezone_flags(self):
        """Test time zone aware temporal types."""
        blueprint = Blueprint("events")
        assert blueprint.timestamp_tz("at").column_type().timezone is True
        assert blueprint.date_time("on").column_type().timezone is False

    def test_unknown_kind(self):
        """Test that an unknown column kind is rejected."""
        with pytest.raises(SchemaError):
            Blueprint("x").add_column("hologram", "y").column_type()


class TestForeignKeyDefinition:
    """Test foreign key description."""

    def test_fluent_definition(self):
        """Test the fluent foreign key definition."""
        fk = Blueprint("posts").foreign("user_id").references("id").on("users").cascade_on_delete()
        assert fk.name == "posts_user_id_foreign"
        assert fk.referenced_table == "users"
        assert fk.delete_action == "CASCADE"

    def test_null_on_delete(self):
        """Test the SET NULL shorthand."""
        fk = Blueprint("posts").foreign("user_id").on("users").null_on_delete()
        assert fk.delete_action == "SET NULL"

    def test_missing_table(self):
        """Test that a foreign key needs a referenced table."""
        with pytest.raises(SchemaError):
            Blueprint("posts").foreign("user_id").validate("posts")

    def test_column_count_mismatch(self):
        """Test that column counts must match."""
        fk = Blueprint("posts").foreign(["a", "b"]).references("id").on("users")
        with pytest.raises(SchemaError):
            fk.validate("posts")


class TestSchemaBuilder:
    """Test DDL execution against SQLite."""

    def test_create_and_alter(self, sqlite_engine, build_schema):
        """Test creating and altering a table."""
        def define(schema):
            with schema.create("users") as table:
                table.id()
                table.string("email").unique()
                table.boolean("active").default(True)
                table.timestamp("joined_at").default(raw("CURRENT_TIMESTAMP"))
            with schema.table("users") as table:
                table.string("nickname").nullable()

        build_schema(sqlite_engine, define)

        inspector = sa.inspect(sqlite_engine)
        assert [c["name"] for c in inspector.get_columns("users")] == [
            "id", "email", "active", "joined_at", "nickname"
        ]
        assert [i["name"] for i in inspector.get_indexes("users")] == ["users_email_unique"]

        with sqlite_engine.begin() as conn:
            conn.execute(sa.text("INSERT INTO users (email) VALUES ('a@example.com')"))
            row = conn.execute(sa.text("SELECT id, active, joined_at FROM users")).one()
        assert row.id == 1
        assert row.active == 1
        assert row.joined_at is not None

    def test_composite_primary_key_and_foreign_key(self, sqlite_engine, build_schema):
        """Test composite primary keys and foreign keys."""
        def define(schema):
            with schema.create("users") as table:
                table.id()
            with schema.create("memberships") as table:
                table.big_integer("user_id")
                table.big_integer("team_id")
                table.primary(["user_id", "team_id"])
                table.foreign("user_id").references("id").on("users").cascade_on_delete()

        build_schema(sqlite_engine, define)

        inspector = sa.inspect(sqlite_engine)
        assert inspector.get_pk_constraint("memberships")["constrained_columns"] == ["user_id", "team_id"]
        (fk,) = inspector.get_foreign_keys("memberships")
        assert fk["referred_table"] == "users"
        assert fk["options"]["ondelete"] == "CASCADE"

    def test_drop_if_exists(self, sqlite_engine, build_schema):
        """Test dropping present and missing tables."""
        def define(schema):
            schema.drop_if_exists("missing")
            with schema.create("tags") as table:
                table.increments("id")
            assert schema.has_table("tags")
            schema.drop_if_exists("tags")
            assert not schema.has_table("tags")

        build_schema(sqlite_engine, define)
        assert sa.inspect(sqlite_engine).get_table_names() == []

    def test_sqlite_has_no_enum_types(self, sqlite_engine, build_schema):
        """Test that SQLite has no enum types to manage."""
        def define(schema):
            with schema.create("posts") as table:
                table.id()
                table.enum("status", ["draft", "live"])
            assert schema.enum_types("posts") == []

        build_schema(sqlite_engine, define)


@pytest.fixture
def pg_connection():
    conn = MagicMock()
    conn.dialect.name = "postgresql"
    conn.execute.return_value.first.return_value = None
    return conn


@pytest.fixture
def pg_schema(pg_connection):
    with patch("squasher.schema.builder.MigrationContext"), patch(
        "squasher.schema.builder.Operations"
    ):
        yield SchemaBuilder(pg_connection)


class TestSchemaBuilderEnumTypes:
    """Test PostgreSQL enum type management with a mocked connection."""

    def test_create_makes_enum_type_first(self, pg_schema, pg_connection):
        """Test that the enum type is created with the table."""
        with patch.object(postgresql.ENUM, "create") as create:
            with pg_schema.create("posts") as table:
                table.id()
                table.enum("status", ["draft", "live"])
                table.string("title")

        create.assert_called_once_with(pg_connection, checkfirst=True)
        pg_schema.operations.create_table.assert_called_once()

    def test_alter_makes_enum_type(self, pg_schema, pg_connection):
        """Test that an added enum column creates its type."""
        with patch.object(postgresql.ENUM, "create") as create:
            with pg_schema.table("posts") as table:
                table.enum("visibility", ["public", "private"])

        create.assert_called_once_with(pg_connection, checkfirst=True)
        pg_schema.operations.batch_alter_table.assert_called_once_with("posts")

    def test_drop_removes_unused_enum_type(self, pg_schema, pg_connection):
        """Test that dropping a table drops its unused enum type."""
        columns = [
            {"name": "id", "type": sa.BigInteger()},
            {"name": "status", "type": postgresql.ENUM("draft", "live", name="post_status")},
        ]
        with patch("sqlalchemy.inspect") as inspect, patch.object(postgresql.ENUM, "drop") as drop:
            inspect.return_value.get_columns.return_value = columns
            pg_schema.drop("posts")

        pg_schema.operations.drop_table.assert_called_once_with("posts")
        assert pg_connection.execute.call_args[0][1] == {"name": "post_status"}
        drop.assert_called_once_with(pg_connection, checkfirst=True)

    def test_drop_keeps_shared_enum_type(self, pg_schema, pg_connection):
        """Test that an enum type still in use is kept."""
        pg_connection.execute.return_value.first.return_value = (1,)
        columns = [{"name": "status", "type": postgresql.ENUM("draft", "live", name="status")}]
        with patch("sqlalchemy.inspect") as inspect, patch.object(postgresql.ENUM, "drop") as drop:
            inspect.return_value.get_columns.return_value = columns
            pg_schema.drop("posts")

        pg_schema.operations.drop_table.assert_called_once_with("posts")
        drop.assert_not_called()


class TestMigration:
    """Test the migration base class and loader."""

    def test_base_methods_are_abstract(self):
        """Test that up and down must be overridden."""
        migration = Migration(schema=None)
        with pytest.raises(NotImplementedError):
            migration.up()
        with pytest.raises(NotImplementedError):
            migration.down()

    def test_load_and_run(self, tmp_path, sqlite_engine):
        """Test loading and running a migration file."""
        path = tmp_path / "2024_01_01_000000_create_tags.py"
        path.write_text(textwrap.dedent('''
            from squasher.schema import Migration


            class CreateTags(Migration):
                def up(self):
                    with self.schema.create("tags") as table:
                        table.increments("id")
                        table.string("name", 40)

                def down(self):
                    self.schema.drop_if_exists("tags")
        '''), encoding="utf-8")

        with sqlite_engine.begin() as conn:
            migration = load_migration(path, SchemaBuilder(conn))
            assert type(migration).__name__ == "CreateTags"
            migration.up()
            assert sa.inspect(conn).has_table("tags")
            migration.down()
            assert not sa.inspect(conn).has_table("tags")

    def test_load_without_migration_class(self, tmp_path, sqlite_engine):
        """Test a file without a Migration subclass."""
        path = tmp_path / "2024_01_01_000000_empty.py"
        path.write_text("VALUE = 1\n", encoding="utf-8")
        with sqlite_engine.begin() as conn:
            with pytest.raises(SchemaError, match="No Migration subclass"):
                load_migration(path, SchemaBuilder(conn))
