# game_server.py
import csv
import os
import time
from collections import deque

import numpy as np
import psutil

from protocol_constants import *
import server_utils
from server_utils import log_message
from simulation import Simulation, STATUS_ENDED
from connection_registry import ConnectionRegistry
from transport import Transport

MSG_NAMES = {
    MSG_INPUT: "INPUT",
    MSG_START_REQUEST: "START",
    MSG_RESTART_REQUEST: "RESTART",
}


# Performance metrics
class PerformanceMetrics:
    def __init__(self):
        self.tick_count = 0
        self.snapshot_count = 0
        self.command_count = 0
        self.start_time = time.time()
        self.cpu_samples = []
        self.tick_durations = deque(maxlen=10000)
        self.packet_sent_count = 0
        self.packet_recv_count = 0
        self.packet_dropped_count = 0
        self.send_error_count = 0

    def log_tick(self, duration):
        self.tick_count += 1
        self.tick_durations.append(duration)

    def log_snapshot(self):
        self.snapshot_count += 1

    def log_command(self):
        self.command_count += 1

    def log_packet_sent(self):
        self.packet_sent_count += 1

    def log_packet_recv(self):
        self.packet_recv_count += 1

    def log_packet_dropped(self):
        self.packet_dropped_count += 1

    def log_send_error(self):
        self.send_error_count += 1

    def sample_cpu(self):
        self.cpu_samples.append(psutil.cpu_percent(interval=None))

    def get_stats(self):
        elapsed = time.time() - self.start_time
        durations_ms = np.array(self.tick_durations, dtype=float) * 1000.0
        return {
            'uptime_seconds': elapsed,
            'total_ticks': self.tick_count,
            'total_snapshots': self.snapshot_count,
            'total_commands': self.command_count,
            'packets_sent': self.packet_sent_count,
            'packets_received': self.packet_recv_count,
            'packets_dropped': self.packet_dropped_count,
            'send_errors': self.send_error_count,
            'tick_rate': self.tick_count / elapsed if elapsed > 0 else 0,
            'avg_tick_ms': float(np.mean(durations_ms)) if len(durations_ms) else 0,
            'p95_tick_ms': float(np.percentile(durations_ms, 95)) if len(durations_ms) else 0,
            'max_tick_ms': float(np.max(durations_ms)) if len(durations_ms) else 0,
            'avg_cpu': sum(self.cpu_samples) / len(self.cpu_samples) if self.cpu_samples else 0,
            'max_cpu': max(self.cpu_samples) if self.cpu_samples else 0,
        }


class GameServer:
    """
    Owns the one Simulation and the one ConnectionRegistry and drives them
    from a fixed-cadence tick loop.
    """

    def __init__(self, transport=None, simulation=None, tick_rate=TICK_RATE_HZ,
                 clock=time.monotonic, sleep=time.sleep):
        self.transport = transport if transport is not None else Transport()
        self.simulation = simulation if simulation is not None else Simulation()
        self.registry = ConnectionRegistry(self.simulation, self.transport, on_event=self.record_event)
        self.interval = 1.0 / tick_rate
        self.clock = clock
        self.sleep = sleep
        self.running = False
        self.last_tick = None
        self.metrics = PerformanceMetrics()

        # Logging
        self.send_log = []   # For server_send_log.csv
        self.recv_log = []   # For server_recv_log.csv
        self.event_log = []  # For server_event_log.csv

    def open(self):
        self.transport.open()
        log_message(f"[SERVER] Tick rate: {1.0 / self.interval:.0f} Hz")
        log_message(f"[SERVER] Max players: {MAX_PLAYERS}")

    def record_event(self, kind, player_id, detail=""):
        self.event_log.append({
            'timestamp': time.time(),
            'event': kind,
            'player_id': player_id,
            'detail': detail,
        })

    # --- Inbound ---
    def service_transport(self):
        self.registry.service()
        for data, addr in self.transport.drain_datagrams():
            self.metrics.log_packet_recv()
            self.dispatch_datagram(data, addr)

    def dispatch_datagram(self, data, addr):
        decoded = server_utils.decode_datagram(data)
        if decoded is None:
            self.metrics.log_packet_dropped()
            return
        msg_type, player_id, command = decoded

        self.recv_log.append({
            'timestamp': time.time(),
            'msg_type': MSG_NAMES[msg_type],
            'src_addr': str(addr),
            'player_id': player_id,
            'payload_size': len(data),
        })
        self.registry.note_received(player_id)

        if msg_type == MSG_INPUT:
            if self.simulation.process_command(player_id, command):
                self.metrics.log_command()
        elif msg_type == MSG_START_REQUEST:
            if self.simulation.start_game():
                self.record_event("START", player_id)
            self.broadcast_snapshot()
        elif msg_type == MSG_RESTART_REQUEST:
            self.simulation.reset()
            if self.simulation.start_game():
                self.record_event("RESTART", player_id)
            self.broadcast_snapshot()

    # --- Outbound ---
    def broadcast_snapshot(self):
        sim = self.simulation
        packet = server_utils.encode_world_state(sim.snapshot_grid(), sim.winner, sim.is_running())
        self.metrics.log_snapshot()

        for player_id, addr in self.registry.destinations():
            if self.transport.send_datagram(addr, packet):
                self.metrics.log_packet_sent()
                self.registry.note_sent(player_id)
            else:
                self.metrics.log_send_error()
                log_message(f"[WARN] Snapshot to P{player_id} at {addr} failed")

            # Log every Nth snapshot to reduce overhead
            if self.metrics.snapshot_count % SEND_LOG_EVERY == 0:
                self.send_log.append({
                    'timestamp': time.time(),
                    'msg_type': 'WORLD_STATE',
                    'dest_addr': str(addr),
                    'snapshot_id': self.metrics.snapshot_count,
                    'payload_size': len(packet),
                })

    # --- Tick loop ---
    def tick(self):
        start = self.clock()
        elapsed = 0.0 if self.last_tick is None else start - self.last_tick
        self.last_tick = start

        self.service_transport()

        was_ended = self.simulation.status == STATUS_ENDED
        self.simulation.advance(elapsed)
        if not was_ended and self.simulation.status == STATUS_ENDED:
            self.record_event("END", self.simulation.winner)

        self.broadcast_snapshot()

        if self.metrics.tick_count % CPU_SAMPLE_EVERY == 0:
            self.metrics.sample_cpu()
        duration = self.clock() - start
        self.metrics.log_tick(duration)
        return duration

    def run(self):
        self.running = True
        while self.running:
            duration = self.tick()
            # A long tick is not compensated; the next one just starts late.
            if duration < self.interval:
                self.sleep(self.interval - duration)

    def stop(self):
        self.running = False

    def shutdown(self, log_dir="."):
        self.running = False
        self.registry.close_all()
        self.transport.close()
        self.print_stats()
        self.save_logs(log_dir)

    def print_stats(self):
        stats = self.metrics.get_stats()
        log_message("\n" + "=" * 60)
        log_message("SERVER PERFORMANCE STATISTICS")
        log_message("=" * 60)
        log_message(f"Uptime: {stats['uptime_seconds']:.1f} seconds")
        log_message(f"Ticks: {stats['total_ticks']} ({stats['tick_rate']:.2f} Hz)")
        log_message(f"Tick duration: avg {stats['avg_tick_ms']:.2f} ms, "
                    f"p95 {stats['p95_tick_ms']:.2f} ms, max {stats['max_tick_ms']:.2f} ms")
        log_message(f"Commands applied: {stats['total_commands']}")
        log_message(f"Packets Sent: {stats['packets_sent']} ({stats['send_errors']} errors)")
        log_message(f"Packets Received: {stats['packets_received']} ({stats['packets_dropped']} dropped)")
        log_message(f"Average CPU: {stats['avg_cpu']:.1f}%")
        log_message(f"Max CPU: {stats['max_cpu']:.1f}%")
        for row in self.registry.client_stats():
            log_message(f"  Player {row['player_id']}: sent {row['packets_sent']}, "
                        f"received {row['packets_received']}, connected {row['connected_seconds']:.1f}s")
        log_message("=" * 60 + "\n")

    def save_logs(self, log_dir="."):
        """Save performance logs to CSV files"""
        try:
            os.makedirs(log_dir, exist_ok=True)
            if self.send_log:
                self._write_csv(os.path.join(log_dir, 'server_send_log.csv'),
                                ['timestamp', 'msg_type', 'dest_addr', 'snapshot_id', 'payload_size'],
                                self.send_log)
            if self.recv_log:
                self._write_csv(os.path.join(log_dir, 'server_recv_log.csv'),
                                ['timestamp', 'msg_type', 'src_addr', 'player_id', 'payload_size'],
                                self.recv_log)
            if self.event_log:
                self._write_csv(os.path.join(log_dir, 'server_event_log.csv'),
                                ['timestamp', 'event', 'player_id', 'detail'],
                                self.event_log)
            client_stats = self.registry.client_stats()
            if client_stats:
                self._write_csv(os.path.join(log_dir, 'server_clients.csv'), list(client_stats[0].keys()), client_stats)

            stats = self.metrics.get_stats()
            self._write_csv(os.path.join(log_dir, 'server_performance.csv'), list(stats.keys()), [stats])
            log_message("[SERVER] Logs saved successfully")
        except OSError as e:
            log_message(f"[SERVER] Error saving logs: {e}")

    @staticmethod
    def _write_csv(path, fieldnames, rows):
        with open(path, 'w', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames)
            writer.writeheader()
            writer.writerows(rows)
