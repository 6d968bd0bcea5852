HOME_CURRENCY = "CHF"
PROVIDER_NAME = "Revolut"
SETTINGS_FILE = "import_settings.json"
PAYEE_MAPPING_FILE = "payee_category_mapping.json"
RULES_FILE = ".ledger_import/rules.yaml"
LEDGER_FILE = "ledger.yaml"
# minimum word-set similarity for a fuzzy payee match
SIMILARITY_THRESHOLD = 0.5
CORRECTION_PAYEE_NAME = "Automatische Saldokorrektur"
# how many leading lines to scan for the Migros header row
MIGROS_HEADER_SCAN_LINES = 15
MIGROS_SALDO_LABEL = "Saldo:"
REVOLUT_COMPLETED_STATES = frozenset(["COMPLETED", "ABGESCHLOSSEN"])
REVOLUT_ID_MAX_LENGTH = 50
MINOR_UNITS = 100
DEFAULT_TRANSFER_NOTES_TEMPLATE = "[Transfer] {{ payee }}"
DEFAULT_CORRECTION_NOTES_TEMPLATE = (
    "Bank: {{ expected | as_money }} {{ currency }}\n"
    "Actual: {{ actual | as_money }} {{ currency }}"
)
