"""
Centralized logging service for ShopDesk.
Provides structured, leveled logging with database storage and easy integration.

Every entry goes to the standard ``logging`` module. When LOG_TO_DATABASE
is on and an app context is available, it is also stored in the app_logs
table together with the request context.
"""

import json
import logging
from datetime import datetime, timedelta

from flask import current_app, has_app_context, has_request_context, request

from .database import db, AppLog

logger = logging.getLogger('shopdesk')


class LoggingService:
    """Centralized logging service for application-wide logging"""

    @staticmethod
    def _get_request_context():
        """Extract request context information"""
        if not has_request_context():
            return None, None, None

        try:
            ip_address = request.headers.get('X-Forwarded-For', request.remote_addr)
            if ip_address and ',' in ip_address:
                ip_address = ip_address.split(',')[0].strip()

            user_agent = request.headers.get('User-Agent', '')
            request_path = request.path

            return ip_address, user_agent, request_path
        except Exception:
            return None, None, None

    @staticmethod
    def _should_persist():
        if not has_app_context():
            return False
        return bool(current_app.config.get('LOG_TO_DATABASE', True))

    @staticmethod
    def log(level, source, message, details=None, user_id=None):
        """
        Log a message

        Args:
            level (str): Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            source (str): Source component (orders, products, sync, auth, storage)
            message (str): Main log message
            details (str/dict): Additional details (will be JSON-encoded if dict)
            user_id (str): Optional user identifier
        """
        level = level.upper()
        if isinstance(details, dict):
            details = json.dumps(details, indent=2, default=str)

        logger.log(
            getattr(logging, level, logging.INFO),
            "[%s] %s%s", source, message, f" | {details}" if details else ""
        )

        if not LoggingService._should_persist():
            return

        try:
            ip_address, user_agent, request_path = LoggingService._get_request_context()

            # Own connection so a log line never commits or rolls back the
            # caller's session
            with db.engine.begin() as conn:
                conn.execute(AppLog.__table__.insert().values(
                    timestamp=datetime.now().isoformat(),
                    level=level,
                    source=source,
                    message=message,
                    details=details,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    request_path=request_path,
                    user_id=user_id,
                ))
        except Exception as e:
            logger.warning(f"Logging service error: {e}")

    @staticmethod
    def debug(source, message, details=None, user_id=None):
        """Log debug message"""
        LoggingService.log('DEBUG', source, message, details, user_id)

    @staticmethod
    def info(source, message, details=None, user_id=None):
        """Log info message"""
        LoggingService.log('INFO', source, message, details, user_id)

    @staticmethod
    def warning(source, message, details=None, user_id=None):
        """Log warning message"""
        LoggingService.log('WARNING', source, message, details, user_id)

    @staticmethod
    def error(source, message, details=None, user_id=None):
        """Log error message"""
        LoggingService.log('ERROR', source, message, details, user_id)

    @staticmethod
    def critical(source, message, details=None, user_id=None):
        """Log critical message"""
        LoggingService.log('CRITICAL', source, message, details, user_id)

    @staticmethod
    def log_user_action(source, action, user_id=None, details=None):
        """Log user actions (login, logout, status change, etc.)"""
        LoggingService.info(source, f"User action: {action}", details, user_id)

    @staticmethod
    def log_error_with_traceback(source, error, details=None):
        """Log error with full traceback"""
        import traceback
        error_details = {
            'error_type': type(error).__name__,
            'error_message': str(error),
            'traceback': traceback.format_exc()
        }
        if details:
            error_details['additional_details'] = details

        LoggingService.error(source, f"Exception occurred: {type(error).__name__}", error_details)

    @staticmethod
    def log_security_event(message, details=None, user_id=None):
        """Log security-related events"""
        LoggingService.warning('security', message, details, user_id)

    @staticmethod
    def recent(limit=100, source=None, level=None):
        """Most recent persisted entries, newest first"""
        query = AppLog.query
        if source:
            query = query.filter(AppLog.source == source)
        if level:
            query = query.filter(AppLog.level == level.upper())
        rows = query.order_by(AppLog.id.desc()).limit(limit).all()
        return [{
            'timestamp': row.timestamp,
            'level': row.level,
            'source': row.source,
            'message': row.message,
            'details': row.details,
            'user_id': row.user_id,
        } for row in rows]

    @staticmethod
    def cleanup_old_logs(days_to_keep=30):
        """Clean up old log entries"""
        try:
            cutoff_iso = (datetime.now() - timedelta(days=days_to_keep)).isoformat()

            with db.engine.begin() as conn:
                result = conn.execute(
                    AppLog.__table__.delete().where(AppLog.timestamp < cutoff_iso)
                )
                deleted_count = result.rowcount

            LoggingService.info('system', f"Cleaned up {deleted_count} old log entries")
            return deleted_count

        except Exception as e:
            LoggingService.error('system', f"Failed to cleanup old logs: {e}")
            return 0

