# N8S v2.1 - non-interactive command dispatch
import argparse

from cli.ui import show_error, show_info, show_success, show_routes_table, show_status_table
from router.errors import RouterError


def build_parser():
    parser = argparse.ArgumentParser(
        prog="n8s",
        description="n8s - nginx multi-port router for n8n. Run without a command for the menu.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Show debug logging")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("routes", help="List routes and their URLs")
    subparsers.add_parser("status", help="Show ports, host and install flags")

    port_parser = subparsers.add_parser("add-port", help="Listen on an additional port")
    port_parser.add_argument("port", help="Port number")

    add_parser = subparsers.add_parser("add-route", help="Add a path -> backend port route")
    add_parser.add_argument("port", help="Listening port the route belongs to")
    add_parser.add_argument("path", help="URL path, e.g. /api/")
    add_parser.add_argument("name", help="Route name (letters, digits, - and _)")
    add_parser.add_argument("backend", help="Backend port on 127.0.0.1")

    remove_parser = subparsers.add_parser("remove-route", help="Remove a route by name")
    remove_parser.add_argument("name", help="Route name")
    remove_parser.add_argument("--port", default=None, help="Listening port, if the name is on several")

    subparsers.add_parser("regenerate", help="Rewrite the nginx config and reload")
    subparsers.add_parser("reconcile", help="Correct install flags from the live system")
    subparsers.add_parser("provision", help="Activate the router in an installed nginx")

    settings_parser = subparsers.add_parser("settings", help="Change primary port, host or app dir")
    settings_parser.add_argument("--port", default=None, help="New primary port")
    settings_parser.add_argument("--host", default=None, help="Server IP or hostname for URLs")
    settings_parser.add_argument("--app-dir", default=None, help="n8n directory")

    return parser


def _routes(store, config, args):
    show_routes_table(config, store.list_routes(config))


def _status(store, config, args):
    show_status_table(config)


def _add_port(store, config, args):
    updated = store.add_port(config, args.port)
    show_success(f"nginx now listens on {', '.join(str(p) for p in updated.ports)}")


def _add_route(store, config, args):
    updated = store.add_route(config, args.port, args.path, args.name, args.backend)
    for route in updated.ordered_routes():
        if route not in config.routes.values():
            show_success(f"Route added: {updated.url_for(route)} -> localhost:{route.backend_port}")


def _remove_route(store, config, args):
    store.remove_route(config, args.name, args.port)
    show_success(f"Route {args.name} removed")


def _regenerate(store, config, args):
    store.apply(config)
    show_success(f"Regenerated {config.nginx_conf} and reloaded nginx")


def _reconcile(store, config, args):
    report = store.reconcile(config)
    if not report.changed:
        show_info("Stored flags match the live system")
        return
    store.save(report.config)
    for change in report.changes:
        show_info(f"Corrected {change.describe()}")


def _provision(store, config, args):
    updated = store.provision_proxy(config)
    show_success(f"nginx router listening on {', '.join(str(p) for p in updated.ports)}")


def _settings(store, config, args):
    updated = store.change_settings(
        config, primary_port=args.port, public_host=args.host, app_dir=args.app_dir
    )
    if updated is config:
        show_info("Nothing changed")
    else:
        show_success("Settings updated")


COMMANDS = {
    'routes':       _routes,
    'status':       _status,
    'add-port':     _add_port,
    'add-route':    _add_route,
    'remove-route': _remove_route,
    'regenerate':   _regenerate,
    'reconcile':    _reconcile,
    'provision':    _provision,
    'settings':     _settings,
}


def handle_command(args, store):
    '''Run one subcommand under the config lock. Returns the exit code.'''
    handler = COMMANDS[args.command]
    try:
        with store.locked():
            config = store.load(reconcile=args.command != 'reconcile')
            handler(store, config, args)
    except (RouterError, OSError) as e:
        show_error(str(e))
        return 1
    return 0
