"""Language-specific configurations."""

LANG_CONFIG = {
    "PT": {
        "label": "PORTUGUÊS",
        "native_language": "Russian",
        "speech_language_code": "pt-PT",
        "voice": "pt-PT-RaquelNeural",
        "available_voices": [
            "pt-PT-RaquelNeural",
            "pt-PT-DuarteNeural",
        ],
    },
}
