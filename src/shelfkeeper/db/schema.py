# ABOUTME: SQL DDL statements for the Shelfkeeper catalog database schema.
# ABOUTME: Defines catalog, taxonomy, review, job, proposal, and settings tables plus migrations.

SCHEMA_V1 = """
CREATE TABLE libraries (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    name       TEXT NOT NULL UNIQUE,
    root_path  TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now'))
);

-- Core catalog table, one row per book file
CREATE TABLE books (
    id                     INTEGER PRIMARY KEY AUTOINCREMENT,
    library_id             INTEGER REFERENCES libraries(id) ON DELETE CASCADE,
    file_name              TEXT,
    file_sub_path          TEXT NOT NULL DEFAULT '',
    book_type              TEXT NOT NULL DEFAULT 'EPUB',
    file_hash              TEXT,
    title                  TEXT,
    subtitle               TEXT,
    publisher              TEXT,
    published_date         TEXT,
    description            TEXT,
    series_name            TEXT,
    series_number          REAL,
    series_total           INTEGER,
    isbn13                 TEXT,
    isbn10                 TEXT,
    asin                   TEXT,
    goodreads_id           TEXT,
    comicvine_id           TEXT,
    hardcover_id           TEXT,
    hardcover_book_id      INTEGER,
    google_id              TEXT,
    page_count             INTEGER,
    language               TEXT,
    amazon_rating          REAL,
    amazon_review_count    INTEGER,
    goodreads_rating       REAL,
    goodreads_review_count INTEGER,
    hardcover_rating       REAL,
    hardcover_review_count INTEGER,
    locked_fields          TEXT NOT NULL DEFAULT '[]',
    match_score            REAL,
    cover_path             TEXT,
    cover_updated_on       TEXT,
    date_added             TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now')),
    date_modified          TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now'))
);

CREATE UNIQUE INDEX idx_books_file_hash ON books(file_hash) WHERE file_hash IS NOT NULL;
CREATE INDEX idx_books_library ON books(library_id);
CREATE INDEX idx_books_series ON books(series_name) WHERE series_name IS NOT NULL;

-- Shared taxonomy entities; names are unique case-sensitively
CREATE TABLE authors (
    id   INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE
);

CREATE TABLE categories (
    id   INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE
);

CREATE TABLE moods (
    id   INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE
);

CREATE TABLE tags (
    id   INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE
);

CREATE TABLE book_authors (
    book_id   INTEGER NOT NULL REFERENCES books(id) ON DELETE CASCADE,
    entity_id INTEGER NOT NULL REFERENCES authors(id) ON DELETE CASCADE,
    position  INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (book_id, entity_id)
);

CREATE TABLE book_categories (
    book_id   INTEGER NOT NULL REFERENCES books(id) ON DELETE CASCADE,
    entity_id INTEGER NOT NULL REFERENCES categories(id) ON DELETE CASCADE,
    position  INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (book_id, entity_id)
);

CREATE TABLE book_moods (
    book_id   INTEGER NOT NULL REFERENCES books(id) ON DELETE CASCADE,
    entity_id INTEGER NOT NULL REFERENCES moods(id) ON DELETE CASCADE,
    position  INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (book_id, entity_id)
);

CREATE TABLE book_tags (
    book_id   INTEGER NOT NULL REFERENCES books(id) ON DELETE CASCADE,
    entity_id INTEGER NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
    position  INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (book_id, entity_id)
);

CREATE TABLE book_reviews (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    book_id     INTEGER NOT NULL REFERENCES books(id) ON DELETE CASCADE,
    provider    TEXT,
    reviewer    TEXT,
    title       TEXT,
    body        TEXT,
    rating      REAL,
    review_date TEXT,
    url         TEXT
);

CREATE INDEX idx_book_reviews_book ON book_reviews(book_id);

-- Schema versioning for future migrations
CREATE TABLE schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now'))
);

INSERT INTO schema_version (version) VALUES (1);
"""

# V2: batch refresh jobs, review proposals, and persisted application settings.
MIGRATION_V2 = """
CREATE TABLE refresh_jobs (
    id               TEXT PRIMARY KEY,
    status           TEXT NOT NULL,
    started_at       TEXT,
    completed_at     TEXT,
    total_items      INTEGER NOT NULL DEFAULT 0,
    completed_items  INTEGER NOT NULL DEFAULT 0,
    user_name        TEXT,
    review_mode      INTEGER NOT NULL DEFAULT 0,
    cancel_requested INTEGER NOT NULL DEFAULT 0,
    message          TEXT
);

CREATE TABLE proposals (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    job_id         TEXT NOT NULL REFERENCES refresh_jobs(id) ON DELETE CASCADE,
    book_id        INTEGER NOT NULL,
    metadata_json  TEXT NOT NULL,
    status         TEXT NOT NULL DEFAULT 'FETCHED',
    fetched_at     TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now')),
    reviewed_at    TEXT,
    reviewer       TEXT
);

CREATE INDEX idx_proposals_job ON proposals(job_id);

CREATE TABLE app_settings (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

INSERT INTO schema_version (version) VALUES (2);
"""

# Ordered (version, sql) pairs applied on top of SCHEMA_V1.
MIGRATIONS: list[tuple[int, str]] = [
    (2, MIGRATION_V2),
]
