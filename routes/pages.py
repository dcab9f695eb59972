# routes/pages.py
from flask import Blueprint, current_app, send_from_directory
from werkzeug.routing import PathConverter

pages_bp = Blueprint('pages', __name__)


class StaticFileConverter(PathConverter):
    """Paths ending in a file extension, so application routes keep their 405s"""
    regex = r'[^/].*?\.[A-Za-z0-9]+'


@pages_bp.record_once
def register_converter(state):
    state.app.url_map.converters['static_file'] = StaticFileConverter

@pages_bp.route('/')
def root():
    return send_from_directory(current_app.static_folder, 'index.html')

@pages_bp.route('/index')
def index():
    return send_from_directory(current_app.static_folder, 'index.html')

@pages_bp.route('/subscribe')
def subscribe():
    return send_from_directory(current_app.static_folder, 'subscribe.html')

@pages_bp.route('/<static_file:filename>')
def static_file(filename):
    """Everything under static/ is also served from the site root"""
    return send_from_directory(current_app.static_folder, filename)
