"""
Database Schema Definition
Defines the structure of the SQLite database for the model / material library.
"""

# Table: models
# Columns:
#   - id: INTEGER PRIMARY KEY (autoincrement, never reused)
#   - name: TEXT NOT NULL
#   - file_path: TEXT NOT NULL  (reference like /uploads/<name>)
#   - file_type: TEXT NOT NULL  (uppercased extension of file_path)
#   - thumbnail_path: TEXT
#   - size: TEXT  (kept as text so large numbers stay exact)
#   - created_at: TEXT NOT NULL (ISO-8601, UTC)

# Table: materials
# Columns:
#   - id: TEXT PRIMARY KEY (opaque uuid string)
#   - model_id: INTEGER NOT NULL -> models.id
#   - name: TEXT NOT NULL
#   - data: TEXT NOT NULL  (JSON object)
#   - thumbnail_path: TEXT
#   - created_at: TEXT NOT NULL

CREATE_TABLE_MODELS = """
CREATE TABLE IF NOT EXISTS models (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    file_path TEXT NOT NULL,
    file_type TEXT NOT NULL,
    thumbnail_path TEXT,
    size TEXT,
    created_at TEXT NOT NULL
);
"""

CREATE_TABLE_MATERIALS = """
CREATE TABLE IF NOT EXISTS materials (
    id TEXT PRIMARY KEY,
    model_id INTEGER NOT NULL,
    name TEXT NOT NULL,
    data TEXT NOT NULL DEFAULT '{}',
    thumbnail_path TEXT,
    created_at TEXT NOT NULL
);
"""

# Parent check on material writes only. Deleting a model leaves its
# materials in place.
CREATE_TRIGGER_MATERIAL_PARENT_INSERT = """
CREATE TRIGGER IF NOT EXISTS trg_materials_model_insert
BEFORE INSERT ON materials
WHEN NOT EXISTS (SELECT 1 FROM models WHERE id = NEW.model_id)
BEGIN
    SELECT RAISE(ABORT, 'FOREIGN KEY constraint failed: materials.model_id');
END;
"""

CREATE_TRIGGER_MATERIAL_PARENT_UPDATE = """
CREATE TRIGGER IF NOT EXISTS trg_materials_model_update
BEFORE UPDATE OF model_id ON materials
WHEN NOT EXISTS (SELECT 1 FROM models WHERE id = NEW.model_id)
BEGIN
    SELECT RAISE(ABORT, 'FOREIGN KEY constraint failed: materials.model_id');
END;
"""

# Indexes:
#   - idx_models_created_at
#   - idx_materials_model_id
#   - idx_materials_created_at

CREATE_INDEX_MODELS_CREATED_AT = """
CREATE INDEX IF NOT EXISTS idx_models_created_at ON models(created_at);
"""

CREATE_INDEX_MATERIALS_MODEL_ID = """
CREATE INDEX IF NOT EXISTS idx_materials_model_id ON materials(model_id);
"""

CREATE_INDEX_MATERIALS_CREATED_AT = """
CREATE INDEX IF NOT EXISTS idx_materials_created_at ON materials(created_at);
"""

SCHEMA_STATEMENTS = (
    CREATE_TABLE_MODELS,
    CREATE_TABLE_MATERIALS,
    CREATE_TRIGGER_MATERIAL_PARENT_INSERT,
    CREATE_TRIGGER_MATERIAL_PARENT_UPDATE,
    CREATE_INDEX_MODELS_CREATED_AT,
    CREATE_INDEX_MATERIALS_MODEL_ID,
    CREATE_INDEX_MATERIALS_CREATED_AT,
)

SCHEMA_VERSION = 2
