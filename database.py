from flask_sqlalchemy import SQLAlchemy
from datetime import datetime

from config import Config

db = SQLAlchemy()


class PanelSettings(db.Model):
    """Operator preferences remembered between sessions"""
    __tablename__ = 'panel_settings'

    id = db.Column(db.Integer, primary_key=True)

    # Server locations
    server_path = db.Column(db.String(500), default='')  # Folder holding server.ini / servertest.ini
    server_exe_path = db.Column(db.String(500), default='')  # Folder or path of StartServer64.bat
    config_dir = db.Column(db.String(500), default='')  # Folder browsed in the config editor

    # RCON connection
    rcon_host = db.Column(db.String(255), default=Config.RCON_HOST)
    rcon_port = db.Column(db.Integer, default=Config.RCON_PORT)
    rcon_password = db.Column(db.String(255), default='')

    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Fields the API may read and write
    EDITABLE_FIELDS = ('server_path', 'server_exe_path', 'config_dir', 'rcon_host', 'rcon_port', 'rcon_password')

    @staticmethod
    def get_or_create():
        """Get the single settings row, creating it on first use"""
        settings = PanelSettings.query.first()
        if not settings:
            settings = PanelSettings(
                server_path='',
                server_exe_path='',
                config_dir='',
                rcon_host=Config.RCON_HOST,
                rcon_port=Config.RCON_PORT,
                rcon_password=''
            )
            db.session.add(settings)
            db.session.commit()
        return settings

    def update_from(self, data):
        """
        Apply a partial update

        Args:
            data: dict of field -> value (unknown fields are ignored)

        Returns:
            list: names of fields that were changed
        """
        changed = []
        for field in self.EDITABLE_FIELDS:
            if field not in data:
                continue
            value = data[field]
            if field == 'rcon_port':
                value = int(value)
            elif value is None:
                value = ''
            else:
                value = str(value).strip()
            if getattr(self, field) != value:
                setattr(self, field, value)
                changed.append(field)
        return changed

    def to_dict(self):
        return {
            'server_path': self.server_path or '',
            'server_exe_path': self.server_exe_path or '',
            'config_dir': self.config_dir or '',
            'rcon_host': self.rcon_host or Config.RCON_HOST,
            'rcon_port': self.rcon_port or Config.RCON_PORT,
            'rcon_password': self.rcon_password or '',
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }

    def __repr__(self):
        return f'<PanelSettings {self.server_path or "(no server path)"}>'
