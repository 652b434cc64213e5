from flask import jsonify
from datetime import datetime

from hifz_tracker import __version__
from hifz_tracker.services import content_service


def health_check():
    """Health check endpoint"""
    return jsonify({"status": "healthy", "version": __version__, "timestamp": datetime.now().isoformat()})


def get_chapter(surah_number):
    return jsonify(content_service.get_chapter_meta(surah_number)), 200


def get_verse(surah_number, ayah_number):
    return jsonify({
        "surah_number": surah_number,
        "ayah_number": ayah_number,
        **content_service.get_verse_text(surah_number, ayah_number)
    }), 200
