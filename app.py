from flask import Flask, request, jsonify
import logging
from werkzeug.exceptions import HTTPException

from config import Config
from database import db, PanelSettings
from settings_manager import (
    ConfigFileError, list_config_files, read_config_file, save_settings, write_raw_content,
    read_server_settings, save_server_settings
)
from mod_manager import ModManager
from steam_utils import SteamWorkshopClient, WorkshopError, parse_workshop_link
from rcon_utils import RConManager
from server_manager import ServerProcess, find_memory_config
from database_browser import DatabaseError, list_databases, list_tables, query_table, drop_table, delete_database
from system_stats import get_system_stats

logging.basicConfig(
    level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s'
)
logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config.from_object(Config)

# Initialize database
db.init_app(app)

with app.app_context():
    db.create_all()

# Initialize managers
mod_manager = ModManager()
server_process = ServerProcess()


def workshop_client():
    """Built per request so a changed STEAM_API_KEY takes effect"""
    return SteamWorkshopClient()


# --- Error handling ---

@app.errorhandler(ConfigFileError)
@app.errorhandler(WorkshopError)
def handle_domain_error(e):
    return jsonify(e.to_dict()), e.status_code


@app.errorhandler(DatabaseError)
def handle_database_error(e):
    return jsonify({'error': e.message}), e.status_code


@app.errorhandler(Exception)
def handle_unexpected_error(e):
    if isinstance(e, HTTPException):
        return e
    logger.error(f"Unhandled error on {request.method} {request.path}: {e}", exc_info=True)
    return jsonify({'error': str(e)}), 500


def _json_body():
    return request.get_json(silent=True) or {}


def _stored_settings():
    return PanelSettings.get_or_create()


def _server_path(value):
    """Path from the request, falling back to the saved panel setting"""
    return (value or '').strip() or _stored_settings().server_path or ''


# --- Config files ---

@app.route('/api/files/list', methods=['GET'])
def files_list():
    """List .ini / .lua files in a directory"""
    directory_path = request.args.get('directoryPath')
    if not directory_path:
        return jsonify({'error': 'Directory path is required'}), 400

    extensions = request.args.get('extensions')
    extensions = extensions.split(',') if extensions else None
    return jsonify({'files': list_config_files(directory_path, extensions)})


@app.route('/api/files/read', methods=['GET', 'POST'])
def files_read():
    """Read a config file, or save a settings patch / raw content to it"""
    if request.method == 'GET':
        file_path = request.args.get('filePath')
        if not file_path:
            return jsonify({'error': 'File path is required'}), 400
        return jsonify(read_config_file(file_path))

    data = _json_body()
    file_path = data.get('filePath')
    if not file_path:
        return jsonify({'error': 'File path is required'}), 400

    if data.get('settings') is not None:
        return jsonify(save_settings(file_path, data['settings']))
    if data.get('content') is not None:
        return jsonify(write_raw_content(file_path, data['content']))
    return jsonify({'error': 'Settings or content is required'}), 400


@app.route('/api/server-settings', methods=['GET', 'POST'])
def server_settings():
    """server.ini settings of a server directory"""
    if request.method == 'GET':
        server_path = _server_path(request.args.get('serverPath'))
        if not server_path:
            return jsonify({'error': 'Server path is required'}), 400
        return jsonify(read_server_settings(server_path))

    data = _json_body()
    server_path = _server_path(data.get('serverPath'))
    if not server_path or data.get('settings') is None:
        return jsonify({'error': 'Server path and settings are required'}), 400
    return jsonify(save_server_settings(server_path, data['settings']))


@app.route('/api/server-config', methods=['GET'])
def server_config():
    """JVM memory settings from the start script"""
    server_path = request.args.get('serverPath') or _stored_settings().server_exe_path
    return jsonify(find_memory_config(server_path))


# --- Mods ---

@app.route('/api/mods', methods=['GET', 'POST'])
def mods():
    if request.method == 'GET':
        file_path = request.args.get('filePath')
        server_path = request.args.get('serverPath')
        if not file_path and not server_path:
            server_path = _stored_settings().server_path
        if not file_path and not server_path:
            return jsonify({'error': 'Server path or file path is required'}), 400

        mod_list, warning = mod_manager.get_mods(server_path, file_path)
        response = {'mods': mod_list}
        if warning:
            response['warning'] = warning
        return jsonify(response)

    data = _json_body()
    server_path = _server_path(data.get('serverPath'))
    mod_list = data.get('mods')
    if not server_path or mod_list is None:
        return jsonify({'error': 'Server path and mods are required'}), 400

    success, message = mod_manager.save_mods(server_path, mod_list)
    if not success:
        status = 500
        if 'not found' in message.lower():
            status = 404
        elif 'permission' in message.lower():
            status = 403
        return jsonify({'success': False, 'error': message}), status
    return jsonify({'success': True, 'message': message})


@app.route('/api/mods/details', methods=['POST'])
def mod_details():
    """Workshop details (with parsed Mod ID) for a list of workshop ids"""
    mod_ids = _json_body().get('modIds')
    if not mod_ids or not isinstance(mod_ids, list):
        return jsonify({'error': 'Mod IDs array is required'}), 400
    return jsonify(workshop_client().get_mod_details(mod_ids))


# --- Steam Workshop ---

@app.route('/api/steam-workshop', methods=['GET'])
def steam_workshop():
    action = request.args.get('action')
    client = workshop_client()

    if action == 'search':
        query = request.args.get('query')
        if not query:
            return jsonify({'error': 'Query is required for search'}), 400
        limit = request.args.get('limit', 50, type=int)
        return jsonify(client.search(query, request.args.get('sortBy', 'subscriptions'), limit))

    if action == 'details':
        file_ids = [file_id.strip() for file_id in request.args.get('fileIds', '').split(',') if file_id.strip()]
        if not file_ids:
            return jsonify({'error': 'File IDs are required'}), 400
        return jsonify(client.get_file_details(file_ids))

    return jsonify({'error': 'Invalid action'}), 400


@app.route('/api/steam-workshop/parse-link', methods=['GET'])
def steam_workshop_parse_link():
    link = request.args.get('link')
    if not link:
        return jsonify({'error': 'Link is required'}), 400

    workshop_id = parse_workshop_link(link)
    if not workshop_id:
        return jsonify({'error': 'Could not extract Workshop ID from link'}), 400
    return jsonify({'workshopId': workshop_id, 'originalLink': link})


@app.route('/api/steam-workshop/collection', methods=['GET'])
def steam_workshop_collection():
    link = request.args.get('link')
    if not link:
        return jsonify({'error': 'Collection link is required'}), 400
    return jsonify(workshop_client().get_collection(link))


# --- RCON ---

def _rcon_manager(source):
    stored = _stored_settings()
    return RConManager(
        host=source.get('host') or stored.rcon_host,
        port=source.get('port') or stored.rcon_port,
        password=source.get('password') or stored.rcon_password
    )


@app.route('/api/rcon', methods=['GET', 'POST'])
def rcon():
    """GET: connection status and players; POST: execute a command"""
    if request.method == 'GET':
        return jsonify(_rcon_manager(request.args).get_status())

    data = _json_body()
    manager = _rcon_manager(data)
    if not manager.password:
        return jsonify({'error': 'RCON password is not configured'}), 400
    if not (data.get('command') or '').strip():
        return jsonify({'error': 'No command given'}), 400

    success, response, elapsed = manager.execute_command(data['command'])
    if not success:
        return jsonify({'success': False, 'error': response, 'responseTime': elapsed}), 500
    return jsonify({'success': True, 'response': response, 'responseTime': elapsed})


# --- Server process ---

@app.route('/api/server-control', methods=['GET', 'POST'])
def server_control():
    if request.method == 'GET':
        return jsonify({'success': True, 'logs': server_process.tail_logs(), **server_process.status()})

    data = _json_body()
    action = data.get('action')

    if action == 'start':
        server_path = data.get('serverPath') or _stored_settings().server_exe_path
        if not server_path:
            return jsonify({'success': False, 'error': 'Server path is not set'}), 400
        success, message = server_process.start(server_path)
        if not success:
            return jsonify({'success': False, 'error': message}), 400
        status = server_process.status()
        return jsonify({'success': True, 'message': message, 'pid': status['pid'], 'batPath': status['scriptPath']})

    if action == 'stop':
        success, message = server_process.stop()
        if not success:
            return jsonify({'success': False, 'error': message}), 400
        return jsonify({'success': True, 'message': message})

    if action == 'status':
        return jsonify({'success': True, **server_process.status()})

    if action == 'logs':
        try:
            limit = max(int(data.get('limit') or 0), 0)
        except (TypeError, ValueError):
            return jsonify({'success': False, 'error': 'limit must be a positive integer'}), 400
        return jsonify({
            'success': True,
            'logs': server_process.tail_logs(limit or None),
            'running': server_process.is_running(),
        })

    return jsonify({'success': False, 'error': 'Invalid action'}), 400


# --- Game databases ---

@app.route('/api/database', methods=['GET', 'POST'])
def database():
    if request.method == 'GET':
        db_path = request.args.get('dbPath')
        table = request.args.get('table')

        if not db_path:
            server_path = _server_path(request.args.get('serverPath'))
            if not server_path:
                return jsonify({'error': 'Server path is required', 'databases': []})
            return jsonify({'databases': list_databases(server_path)})

        if not table:
            return jsonify({'tables': list_tables(db_path)})

        limit = request.args.get('limit', 100, type=int)
        offset = request.args.get('offset', 0, type=int)
        return jsonify(query_table(db_path, table, limit, offset))

    data = _json_body()
    action = data.get('action')
    db_path = data.get('dbPath')

    if action == 'delete_db':
        success, message = delete_database(db_path)
    elif action == 'drop_table':
        success, message = drop_table(db_path, data.get('tableName'))
    else:
        return jsonify({'error': 'Invalid action'}), 400
    return jsonify({'success': success, 'message': message})


# --- Host ---

@app.route('/api/system', methods=['GET'])
def system():
    include_server = request.args.get('pz') != 'false'
    return jsonify(get_system_stats(include_server))


@app.route('/api/panel-settings', methods=['GET', 'POST'])
def panel_settings():
    """Saved server paths and RCON connection"""
    settings = _stored_settings()
    if request.method == 'GET':
        return jsonify(settings.to_dict())

    try:
        changed = settings.update_from(_json_body())
    except (TypeError, ValueError):
        db.session.rollback()
        return jsonify({'success': False, 'message': 'RCON port must be a number'}), 400

    db.session.commit()
    if changed:
        logger.info(f"Panel settings updated: {', '.join(changed)}")
    return jsonify({'success': True, 'changed': changed, 'settings': settings.to_dict()})


if __name__ == '__main__':
    logger.info(f"Starting Zomboid Panel on {Config.HOST}:{Config.PORT}")
    app.run(host=Config.HOST, port=Config.PORT, debug=Config.DEBUG)
