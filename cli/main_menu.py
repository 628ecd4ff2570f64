# N8S v2.1
from cli.ui import (
    select_from_list, show_panel, show_success, show_error, show_info, show_warning,
    show_step_line, show_step_detail, step_input, show_routes_table, show_status_table
)
from config import DEFAULT_PORT, APP_DIR
from router.errors import RouterError


def first_run_setup(store):
    '''Prompt for the primary port and app directory, then create the config'''
    show_panel("First Run Setup", "No router configuration found")
    show_step_line()
    show_step_detail("Configure the primary nginx listening port and n8n directory")
    show_step_line()

    port = step_input(f"Primary nginx port [{DEFAULT_PORT}]: ").strip() or DEFAULT_PORT
    app_dir = step_input(f"n8n directory [{APP_DIR}]: ").strip() or APP_DIR

    show_step_detail("Detecting public IP...")
    with store.locked():
        if store.exists():
            # Another session finished setup while we were prompting
            show_step_line()
            show_warning("Router config already exists, keeping it")
            return store.load()
        config = store.initialize(primary_port=port, app_dir=app_dir)
    show_step_line()
    show_success(f"Router configured on port {config.primary_port} ({config.public_host})")
    return config


def _run_action(store, action):
    '''Run one locked load-mutate-save action, report errors, wait for Enter'''
    try:
        with store.locked():
            config = store.load()
            action(store, config)
    except (RouterError, OSError) as e:
        show_error(str(e))
    print()
    input("Press Enter...")


def add_route_menu(store, config):
    show_panel("Add Route", "Map a URL path to a local backend port")
    ports = [str(p) for p in config.ports]
    port = ports[0] if len(ports) == 1 else select_from_list("Listening port", ports)

    show_step_line()
    path = step_input("nginx path (e.g. /api/): ")
    backend_port = step_input("Internal port: ")
    name = step_input("Route name (letters, digits, - and _): ")

    updated = store.add_route(config, port, path, name, backend_port)
    existing = list(config.routes.values())
    show_step_line()
    show_success("Route added")
    for route in updated.ordered_routes():
        if route not in existing:
            show_info(f"{updated.url_for(route)} -> localhost:{route.backend_port}")


def list_routes_menu(store, config):
    show_panel("Routes", f"Server {config.public_host} | ports {', '.join(str(p) for p in config.ports)}")
    show_routes_table(config, store.list_routes(config))


def remove_route_menu(store, config):
    routes = store.list_routes(config)
    if not routes:
        show_warning("No routes to remove")
        return

    labels = {f"{r.port} {r.name}  ({url})": r for r, url in routes}
    choice = select_from_list("Route to remove", list(labels) + ["⬅️  Cancel"])
    if choice not in labels:
        return

    route = labels[choice]
    store.remove_route(config, route.name, route.port)
    show_success(f"Route {route.name} removed from port {route.port}")


def add_port_menu(store, config):
    show_panel("Add Listening Port", f"Current ports: {', '.join(str(p) for p in config.ports)}")
    show_step_line()
    port = step_input("New nginx port: ")
    updated = store.add_port(config, port)
    show_success(f"nginx now listens on {', '.join(str(p) for p in updated.ports)}")


def change_settings_menu(store, config):
    show_panel("Change Settings", "Leave a value empty to keep it")
    show_step_line()
    port = step_input(f"Primary nginx port [{config.primary_port}]: ").strip() or None
    host = step_input(f"Server IP [{config.public_host}]: ").strip() or None
    app_dir = step_input(f"n8n directory [{config.app_dir}]: ").strip() or None

    updated = store.change_settings(config, primary_port=port, public_host=host, app_dir=app_dir)
    if updated is config:
        show_info("Nothing changed")
    else:
        show_success("Settings updated")


def regenerate_menu(store, config):
    store.apply(config)
    show_success(f"Regenerated {config.nginx_conf} and reloaded nginx")


def status_menu(store, config):
    show_panel("Router Status", "Stored settings checked against the live system")
    show_status_table(config)


def provision_menu(store, config):
    show_panel("Provision Router", "Activate the n8s server config in nginx")
    store.provision_proxy(config)
    show_success(f"nginx router listening on {', '.join(str(p) for p in config.ports)}")


def run_main_loop(store):
    '''Main application loop'''
    if not store.exists():
        try:
            first_run_setup(store)
        except (RouterError, OSError) as e:
            show_error(str(e))
            return

    actions = {
        "🔀 Add Route": add_route_menu,
        "📋 List Routes": list_routes_menu,
        "🗑️  Remove Route": remove_route_menu,
        "➕ Add Listening Port": add_port_menu,
        "⚙️  Change Settings": change_settings_menu,
        "🔄 Regenerate nginx Config": regenerate_menu,
        "🩺 Router Status": status_menu,
        "🛠️  Provision nginx Router": provision_menu,
    }

    while True:
        show_panel("N8S - nginx Manager", "Routes, ports and settings for the n8n router")
        choice = select_from_list("Main Menu", list(actions) + ["❌ Exit"])

        if choice == "❌ Exit":
            break

        _run_action(store, actions[choice])
