import socket
import time
import argparse
import csv
import threading
import psutil
import signal
import sys
import random
from protocol_constants import *
from client_utils import (
    encode_join,
    encode_input,
    encode_start_request,
    decode_connect_response,
    parse_world_state,
    find_player,
    current_time_ms,
)

BUFFER_SIZE = 4096

player_id = None
server_udp_addr = None
running = True
metrics = []
stop_event = threading.Event()
metrics_lock = threading.Lock()
output_csv_path = None

METRIC_FIELDS = [
    'client_id', 'recv_time_ms', 'interval_ms', 'jitter_ms', 'running',
    'winner', 'alive', 'pos_x', 'pos_y', 'cpu_percent',
]


def save_metrics():
    """Save metrics to CSV - called on exit"""
    if not output_csv_path:
        return

    with metrics_lock:
        try:
            with open(output_csv_path, 'w', newline='') as f:
                writer = csv.DictWriter(f, fieldnames=METRIC_FIELDS)
                writer.writeheader()
                writer.writerows(metrics)
            print(f"[CLIENT] Saved {len(metrics)} metrics to {output_csv_path}")
        except OSError as e:
            print(f"[CLIENT] Error saving metrics: {e}")


def signal_handler(sig, frame):
    """Handle termination signals gracefully"""
    global running
    print(f"[CLIENT] Received signal {sig}, shutting down...")
    running = False
    stop_event.set()
    save_metrics()
    sys.exit(0)


def connect(host, udp_sock):
    """
    Join over TCP, declaring our UDP port, and wait for the assigned id.
    Returns the TCP socket, which must stay open for as long as we play:
    the server forgets our UDP destination once it closes.
    """
    global player_id, server_udp_addr
    listen_port = udp_sock.getsockname()[1]
    for attempt in range(10):
        tcp = None
        try:
            tcp = socket.create_connection((host, SERVER_TCP_PORT), timeout=2.0)
            tcp.sendall(encode_join(listen_port))
            pid = decode_connect_response(tcp.recv(BUFFER_SIZE))
            if pid is None:
                print("[CLIENT] Server refused the join (full?)")
                tcp.close()
                return None
            player_id = pid
            server_udp_addr = (host, SERVER_UDP_PORT)
            print(f"[CLIENT] Connected as Player {player_id}, listening on UDP {listen_port}")
            return tcp
        except socket.timeout:
            print(f"[CLIENT] Timeout connecting (attempt {attempt+1}/10)")
        except OSError as e:
            print(f"[CLIENT] Connect error: {e}")
            time.sleep(0.5)
        if tcp is not None:
            tcp.close()
    print("[CLIENT] All connection attempts failed")
    return None


def simulate_player(sock):
    """Press random direction keys and drop the odd bomb."""
    print(f"[CLIENT] Player {player_id} starting to play...")
    commands = [CMD_NORTH, CMD_SOUTH, CMD_WEST, CMD_EAST]
    while not stop_event.is_set():
        command = CMD_PLACE_BOMB if random.random() < 0.1 else random.choice(commands)
        try:
            sock.sendto(encode_input(player_id, command), server_udp_addr)
        except OSError as e:
            print(f"[CLIENT] Send error: {e}")
        time.sleep(random.uniform(0.1, 0.3))


def receive_loop(sock, duration):
    global running

    sock.settimeout(0.05)
    start_time = time.time()
    last_recv = None
    last_interval = None
    packet_count = 0
    winner_seen = WINNER_NONE

    input_thread = threading.Thread(target=simulate_player, args=(sock,), daemon=True)
    input_thread.start()

    while time.time() - start_time < duration and running:
        try:
            data, _ = sock.recvfrom(BUFFER_SIZE)
        except socket.timeout:
            continue
        except OSError as e:
            print(f"[CLIENT] Receive error: {e}")
            break

        state = parse_world_state(data)
        if state is None:
            continue

        recv_ts = current_time_ms()
        interval = recv_ts - last_recv if last_recv is not None else 0
        jitter = abs(interval - last_interval) if last_interval is not None else 0
        last_recv, last_interval = recv_ts, interval

        pos = find_player(state['grid'], player_id)
        metric = {
            'client_id': player_id,
            'recv_time_ms': recv_ts,
            'interval_ms': interval,
            'jitter_ms': jitter,
            'running': int(state['running']),
            'winner': state['winner'],
            'alive': int(pos is not None),
            'pos_x': pos[0] if pos else -1,
            'pos_y': pos[1] if pos else -1,
            'cpu_percent': psutil.cpu_percent(interval=None),
        }
        with metrics_lock:
            metrics.append(metric)

        packet_count += 1
        if packet_count % 30 == 0:
            print(f"[CLIENT] {packet_count} snapshots, running={state['running']}, "
                  f"pos={pos}, interval={interval}ms, jitter={jitter}ms")

        if state['winner'] != WINNER_NONE and state['winner'] != winner_seen:
            winner_seen = state['winner']
            if winner_seen == WINNER_DRAW:
                print("[CLIENT] Match ended in a draw")
            else:
                print(f"[CLIENT] Match won by Player {winner_seen}")

    print(f"[CLIENT] Receive loop ending. Collected {len(metrics)} metrics")
    stop_event.set()
    running = False
    input_thread.join(timeout=2.0)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Headless bomber client for server testing")
    parser.add_argument("--host", type=str, default="127.0.0.1")
    parser.add_argument("--duration", type=int, default=30)
    parser.add_argument("--start", action="store_true", help="send a start request after joining")
    parser.add_argument("--output_csv", type=str, required=True)
    args = parser.parse_args()

    output_csv_path = args.output_csv

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("0.0.0.0", 0))

    tcp = connect(args.host, sock)
    if tcp is None:
        save_metrics()
        sys.exit(1)

    if args.start:
        sock.sendto(encode_start_request(player_id), server_udp_addr)

    try:
        receive_loop(sock, args.duration)
    finally:
        tcp.close()
        sock.close()
        save_metrics()
