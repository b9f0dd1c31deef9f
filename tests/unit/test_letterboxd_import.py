from __future__ import annotations

import pytest

from etl.letterboxd_import import (
    EMPTY_FILE,
    NO_VALID_ROWS,
    OVERSIZED,
    TOO_MANY_ERRORS,
    UNPARSEABLE_ROW,
    UNRECOGNIZED_HEADER,
    WRONG_TYPE,
    HistoryImportError,
    find_columns,
    parse_letterboxd_csv,
    parse_rating,
)

RATINGS_EXPORT = (
    "Date,Name,Year,Letterboxd URI,Rating\n"
    "2024-01-03,Heat,1995,https://boxd.it/a,4.5\n"
    "2024-01-04,Paddington 2,2017,https://boxd.it/b,5\n"
    "2024-01-05,\"Crouching Tiger, Hidden Dragon\",2000,https://boxd.it/c,\n"
)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("★★★★", 4.0),
        ("★★★½", 3.5),
        ("½", 0.5),
        ("4.5", 4.5),
        ("8", 4.0),
        ("", 0.0),
        ("  ", 0.0),
        ("Loved it", 5.0),
        ("dislike", 2.0),
        ("meh", 3.0),
    ],
)
def test_parse_rating_formats(text, expected):
    assert parse_rating(text) == expected


@pytest.mark.parametrize("text", ["eleven", "11", "-1"])
def test_parse_rating_rejects_nonsense(text):
    with pytest.raises(ValueError):
        parse_rating(text)


def test_ratings_export_parses_all_rows():
    result = parse_letterboxd_csv(RATINGS_EXPORT.encode("utf-8"), "ratings.csv")

    assert [e.title for e in result.entries] == [
        "Heat",
        "Paddington 2",
        "Crouching Tiger, Hidden Dragon",
    ]
    assert result.entries[0].year == 1995
    assert result.entries[0].rating == 4.5
    assert result.entries[2].rating == 0.0
    assert result.row_errors == []


def test_diary_export_keeps_year_and_watched_date_apart():
    columns = find_columns(
        ["Date", "Name", "Year", "Letterboxd URI", "Rating", "Rewatch", "Tags", "Watched Date"]
    )
    assert (columns.title, columns.year, columns.rating, columns.watched_date) == (1, 2, 4, 7)


def test_byte_order_mark_is_tolerated():
    content = "\ufeffTitle,Your Rating\nAlien,★★★★★\n".encode("utf-8")
    result = parse_letterboxd_csv(content, "export.csv")
    assert result.entries[0].title == "Alien"
    assert result.entries[0].rating == 5.0


def test_bad_rows_are_reported_and_skipped():
    content = (
        "Name,Year,Rating\n"
        "Heat,1995,4\n"
        ",2001,3\n"
        "Alien,1979,great-ish\n"
        "\n"
    ).encode("utf-8")

    result = parse_letterboxd_csv(content, "ratings.csv")

    assert [e.title for e in result.entries] == ["Heat"]
    assert result.row_errors == [
        "Row 3: missing title",
        "Row 4: unrecognised rating 'great-ish'",
    ]


def _kind(content: bytes, filename="ratings.csv", **kwargs) -> str:
    with pytest.raises(HistoryImportError) as excinfo:
        parse_letterboxd_csv(content, filename, **kwargs)
    return excinfo.value.kind


def test_wrong_extension():
    assert _kind(b"Name\nHeat\n", "ratings.xlsx") == WRONG_TYPE


def test_binary_content_is_wrong_type():
    assert _kind(b"\xff\xfe\x00N\x00a\x00m\x00e") == WRONG_TYPE


def test_empty_file():
    assert _kind(b"") == EMPTY_FILE
    assert _kind(b"   \n\n") == EMPTY_FILE


def test_oversized_file():
    assert _kind(b"Name\nHeat\n", max_bytes=4) == OVERSIZED


def test_unrecognized_header():
    assert _kind(b"Foo,Bar\n1,2\n") == UNRECOGNIZED_HEADER


def test_too_many_errors_stops_the_import():
    rows = "".join(f"Movie {i},2000,bogus\n" for i in range(5))
    with pytest.raises(HistoryImportError) as excinfo:
        parse_letterboxd_csv(f"Name,Year,Rating\n{rows}".encode(), "r.csv", error_ceiling=2)

    assert excinfo.value.kind == TOO_MANY_ERRORS
    assert len(excinfo.value.row_errors) == 3


def test_no_valid_rows():
    error = None
    try:
        parse_letterboxd_csv(b"Name,Rating\n,4\n", "r.csv")
    except HistoryImportError as exc:
        error = exc
    assert error is not None
    assert error.kind == NO_VALID_ROWS
    assert error.to_dict()["row_errors"] == ["Row 2: missing title"]


def test_oversized_field_is_unparseable():
    huge = "x" * 200_000
    assert _kind(f"Name,Rating\n{huge},4\n".encode()) == UNPARSEABLE_ROW
