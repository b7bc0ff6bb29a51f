from datetime import datetime

import pytest

from ddlops.core.ddl import (
    CheckDef,
    ColumnDef,
    DatabaseDef,
    DatabaseFile,
    ExtendedPropertyDef,
    ForeignKeyDef,
    FullTextIndexDef,
    IndexDef,
    KeyConstraintDef,
    ModuleDef,
    PermissionDef,
    PrincipalDef,
    TableDef,
    format_type,
    object_header,
    quote_name,
    render_checks,
    render_database,
    render_defaults,
    render_drop,
    render_extended_property,
    render_foreign_keys,
    render_fulltext_index,
    render_indexes,
    render_module,
    render_permission,
    render_table,
    render_user,
)
from ddlops.core.models import ObjectKind, ObjectRef


def test_quote_name_escapes_closing_bracket():
    assert quote_name("odd]name") == "[odd]]name]"


@pytest.mark.parametrize(
    "args, expected",
    [
        (("varchar", 50), "[varchar](50)"),
        (("varbinary", -1), "[varbinary](max)"),
        (("nvarchar", 100), "[nvarchar](50)"),
        (("nvarchar", -1), "[nvarchar](max)"),
        (("decimal", 9, 18, 2), "[decimal](18, 2)"),
        (("datetime2", 8, 27, 7), "[datetime2](7)"),
        (("float", 8, 53), "[float]"),
        (("float", 4, 24), "[float](24)"),
        (("int", 4, 10), "[int]"),
    ],
)
def test_format_type(args, expected):
    assert format_type(*args) == expected


def test_format_type_user_defined():
    assert format_type("Phone", type_schema="sales", is_user_defined=True) == "[sales].[Phone]"


def test_object_header_uses_twelve_hour_clock():
    header = object_header("Table", "[dbo].[Orders]", datetime(2026, 1, 2, 0, 5, 9))

    assert header == (
        "/****** Object:  Table [dbo].[Orders]    Script Date: 1/2/2026 12:05:09 AM ******/"
    )


def test_render_database():
    db = DatabaseDef(
        name="SalesDB",
        collation="SQL_Latin1_General_CP1_CI_AS",
        compatibility_level=160,
        recovery_model="SIMPLE",
        files=(
            DatabaseFile("SalesDB", "D:\\data\\SalesDB.mdf", size_pages=1024, growth=8192),
            DatabaseFile(
                "SalesDB_log", "L:\\log\\SalesDB_log.ldf", is_log=True, filegroup=None,
                size_pages=1024, max_size_pages=268435456, growth=10, is_percent_growth=True,
            ),
        ),
        options=(("ANSI_NULLS", "OFF"),),
    )

    batches = render_database(db)

    assert batches[0] == (
        "CREATE DATABASE [SalesDB]\n"
        " ON  PRIMARY \n"
        "( NAME = N'SalesDB', FILENAME = N'D:\\data\\SalesDB.mdf' , SIZE = 8192KB , "
        "MAXSIZE = UNLIMITED , FILEGROWTH = 65536KB )\n"
        " LOG ON \n"
        "( NAME = N'SalesDB_log', FILENAME = N'L:\\log\\SalesDB_log.ldf' , SIZE = 8192KB , "
        "MAXSIZE = 2048GB , FILEGROWTH = 10% )\n"
        " COLLATE SQL_Latin1_General_CP1_CI_AS"
    )
    assert batches[1:] == [
        "ALTER DATABASE [SalesDB] SET COMPATIBILITY_LEVEL = 160",
        "ALTER DATABASE [SalesDB] SET ANSI_NULLS OFF ",
        "ALTER DATABASE [SalesDB] SET RECOVERY SIMPLE ",
    ]


@pytest.mark.parametrize(
    "principal, expected",
    [
        (PrincipalDef("app", "SQL_USER", login_name="app_login"), "CREATE USER [app] FOR LOGIN [app_login]"),
        (PrincipalDef("svc", "SQL_USER", default_schema="dbo"), "CREATE USER [svc] WITHOUT LOGIN WITH DEFAULT_SCHEMA=[dbo]"),
        (PrincipalDef("ops@corp.com", "EXTERNAL_USER"), "CREATE USER [ops@corp.com] FROM EXTERNAL PROVIDER"),
    ],
)
def test_render_user(principal, expected):
    assert render_user(principal) == [expected]


def _orders() -> TableDef:
    return TableDef(
        schema="dbo",
        name="Orders",
        columns=(
            ColumnDef("Id", "int", is_nullable=False, identity=(1, 1)),
            ColumnDef(
                "Note", "nvarchar", max_length=200, collation="Latin1_General_CI_AS",
                default_name="DF_Orders_Note", default_definition="(N'')",
            ),
            ColumnDef("Total", "money", computed_definition="([Qty]*[Price])", is_persisted=True),
        ),
        key_constraints=(KeyConstraintDef("PK_Orders", True, True, (("Id", False),)),),
        indexes=(
            IndexDef("CIX_Orders", True, False, (("Id", False),)),
            IndexDef(
                "IX_Orders_Note", False, True, (("Note", True),),
                included=("Id",), filter_definition="([Note] IS NOT NULL)",
            ),
        ),
        checks=(CheckDef("CK_Orders_Id", "([Id]>(0))", is_disabled=True),),
        foreign_keys=(
            ForeignKeyDef(
                "FK_Orders_Customers", ("CustomerId",), "sales", "Customers", ("Id",),
                on_delete="SET_NULL", is_not_trusted=True,
            ),
        ),
        fulltext=FullTextIndexDef("ftCatalog", "PK_Orders", (("Note", 1033),)),
    )


def test_render_table():
    assert render_table(_orders()) == [
        "CREATE TABLE [dbo].[Orders](\n"
        "\t[Id] [int] IDENTITY(1,1) NOT NULL,\n"
        "\t[Note] [nvarchar](100) COLLATE Latin1_General_CI_AS NULL,\n"
        "\t[Total]  AS ([Qty]*[Price]) PERSISTED,\n"
        " CONSTRAINT [PK_Orders] PRIMARY KEY CLUSTERED ([Id] ASC)\n"
        ") ON [PRIMARY]"
    ]


def test_render_table_without_keys_or_schema():
    batch = render_table(_orders(), include_keys=False, schema_qualify=False)[0]

    assert batch.startswith("CREATE TABLE [Orders](")
    assert "PRIMARY KEY" not in batch


def test_render_defaults_and_checks():
    table = _orders()

    assert render_defaults(table) == [
        "ALTER TABLE [dbo].[Orders] ADD  CONSTRAINT [DF_Orders_Note] DEFAULT (N'') FOR [Note]"
    ]
    assert render_checks(table) == [
        "ALTER TABLE [dbo].[Orders]  WITH CHECK ADD  CONSTRAINT [CK_Orders_Id] CHECK  ([Id]>(0))",
        "ALTER TABLE [dbo].[Orders] NOCHECK CONSTRAINT [CK_Orders_Id]",
    ]


def test_render_indexes_filters_by_kind():
    table = _orders()

    everything = render_indexes(table)
    nonclustered_only = render_indexes(table, clustered=False)

    assert len(everything) == 2
    assert everything[1] == (
        "CREATE UNIQUE NONCLUSTERED INDEX [IX_Orders_Note] ON [dbo].[Orders]\n"
        "([Note] DESC)\nINCLUDE([Id])\nWHERE ([Note] IS NOT NULL)"
    )
    assert nonclustered_only == everything[1:]


def test_render_foreign_keys():
    assert render_foreign_keys(_orders()) == [
        "ALTER TABLE [dbo].[Orders]  WITH NOCHECK ADD  CONSTRAINT [FK_Orders_Customers] "
        "FOREIGN KEY([CustomerId])\nREFERENCES [sales].[Customers] ([Id])\nON DELETE SET NULL",
        "ALTER TABLE [dbo].[Orders] CHECK CONSTRAINT [FK_Orders_Customers]",
    ]


def test_render_fulltext_index():
    assert render_fulltext_index(_orders()) == [
        "CREATE FULLTEXT INDEX ON [dbo].[Orders](\n[Note] LANGUAGE 1033)\n"
        "KEY INDEX [PK_Orders] ON [ftCatalog]\nWITH (CHANGE_TRACKING = AUTO)"
    ]


def test_render_module_with_set_options_and_disabled_trigger():
    trigger = ModuleDef(
        ObjectKind.TRIGGER, "trAudit", "dbo",
        definition="\nCREATE TRIGGER trAudit ON dbo.Orders AFTER INSERT AS SELECT 1\n",
        uses_quoted_identifier=False, parent="[dbo].[Orders]", is_disabled=True,
    )

    assert render_module(trigger) == [
        "SET ANSI_NULLS ON",
        "SET QUOTED_IDENTIFIER OFF",
        "CREATE TRIGGER trAudit ON dbo.Orders AFTER INSERT AS SELECT 1",
        "DISABLE TRIGGER [dbo].[trAudit] ON [dbo].[Orders]",
    ]


def test_render_module_encrypted():
    module = ModuleDef(ObjectKind.PROCEDURE, "uspSecret", "dbo", definition=None)

    assert render_module(module) == ["-- [dbo].[uspSecret] is encrypted and was not scripted"]


@pytest.mark.parametrize(
    "perm, expected",
    [
        (PermissionDef("GRANT", "SELECT", "Readers", "[dbo].[Orders]", ("Id", "Note")),
         "GRANT SELECT ON [dbo].[Orders] ([Id], [Note]) TO [Readers]"),
        (PermissionDef("GRANT_WITH_GRANT_OPTION", "EXECUTE", "app", "SCHEMA::[sales]"),
         "GRANT EXECUTE ON SCHEMA::[sales] TO [app] WITH GRANT OPTION"),
        (PermissionDef("DENY", "CONNECT", "guest"), "DENY CONNECT TO [guest]"),
        (PermissionDef("REVOKE", "ALTER", "app", grantor="dbo"), "REVOKE ALTER FROM [app] AS [dbo]"),
    ],
)
def test_render_permission(perm, expected):
    assert render_permission(perm) == expected


def test_render_extended_property_stops_at_first_missing_level():
    prop = ExtendedPropertyDef(
        "MS_Description", "Customer's orders", "SCHEMA", "dbo", "TABLE", "Orders"
    )

    assert render_extended_property(prop) == (
        "EXEC sys.sp_addextendedproperty @name=N'MS_Description' , "
        "@value=N'Customer''s orders' , @level0type=N'SCHEMA' , @level0name=N'dbo' , "
        "@level1type=N'TABLE' , @level1name=N'Orders'"
    )


def test_render_drop():
    assert render_drop(ObjectRef(ObjectKind.TABLE, "Orders", "dbo")) == "DROP TABLE IF EXISTS [dbo].[Orders]"
    assert render_drop(ObjectRef(ObjectKind.TRIGGER, "trDdl")) == "DROP TRIGGER IF EXISTS [trDdl] ON DATABASE"
    assert render_drop(ObjectRef(ObjectKind.ROLE, "Readers")) == "DROP ROLE IF EXISTS [Readers]"
