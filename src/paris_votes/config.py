"""Configuration constants for the Paris polling-station vote pipeline."""

# Arrondissement -> region group. Every arrondissement 1..20 appears exactly once.
REGION_GROUPS: dict[str, tuple[int, ...]] = {
    "Nord-Est": (11, 19, 20),
    "Sud-Ouest": (7, 14, 15),
    "Centre": (1, 2, 3, 4, 5, 6),
    "Sud-Est": (12, 13),
    "Nord-Ouest": (8, 16, 17),
    "Nord": (9, 10, 18),
}
N_ARRONDISSEMENTS = 20

ROUND_LABELS = {1: "1er", 2: "2eme"}

ID_COLUMN = "id_bvote"
ARRONDISSEMENT_COLUMN = "arrondissement"
REGION_COLUMN = "region_group"

# Vote-status aggregates and administrative/geometry columns never enter the vote block.
DEFAULT_EXCLUDED_PREFIXES: tuple[str, ...] = ("nb_", "num_", "geo_")
# Shapefile exports (legislative, municipal) also carry st_area/st_perimeter and objectid.
SHAPE_EXCLUDED_PREFIXES: tuple[str, ...] = ("st_",)
SHAPE_EXCLUDED_COLUMNS: tuple[str, ...] = ("objectid",)
DEFAULT_EXCLUDED_COLUMNS: tuple[str, ...] = (
    "inscrits",
    "votants",
    "exprimes",
    "blancs",
    "nuls",
    "abstentions",
    ARRONDISSEMENT_COLUMN,
    REGION_COLUMN,
)

MATRIX_PREFIX = "vote_matrix_"
INPUT_SUFFIXES = (".csv", ".parquet")

MAX_WORKERS = 4  # concurrent harmonization threads

# Analysis thresholds
MIN_PCA_ROWS = 3
MIN_PCA_COLUMNS = 2
DEFAULT_N_COMPONENTS = 5
N_CLUSTER_COMPONENTS = 2  # leading components used for clustering and shift
CLUSTER_K = 4
