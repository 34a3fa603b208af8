# Client-facing error text. The admin UI is Japanese.
ALL_FIELDS_REQUIRED = "すべてのフィールドを入力してください。"
SERVER_ERROR = "サーバーエラーが発生しました。"
