"""
BVH Tool - Analysis CLI
Plays pose tables through SkeletonAnalysisViewer and exports kinematics,
descriptor snapshots, and distance covered.

Pose tables are .npz files (bone_names, parents, times, world_positions,
local_rotations) written by the engine that parses and evaluates the BVH.

Usage:
    python examples/run_analysis.py [--config analysis.json] [--joint NAME] <pose_table.npz> [...]
    python examples/run_analysis.py --demo

Example:
    python examples/run_analysis.py --joint RightHand output/walk.npz
"""

import os
import sys
import time
import traceback
from pathlib import Path

import numpy as np

from bvh_tool.analysis.config import load_config
from bvh_tool.analysis.descriptor_manager import DescriptorType
from bvh_tool.analysis.orchestrator import SkeletonAnalysisViewer
from bvh_tool.analysis.skeleton import Bone, PoseTableRig, Skeleton, load_pose_table, save_pose_table
from bvh_tool.analysis.utils import ensure_output_dir, write_json
from bvh_tool.visualization import MatplotlibRenderer, visualize_pose

# Descriptors sampled at the middle frame of every clip
SNAPSHOT_DESCRIPTORS = ("box", "sphere", "ellipsoid", "com", "balance")

DEMO_PATH = "output/demo_walk.npz"


def build_demo_walk(frames=180, frame_rate=90.0):
    """
    Synthetic two-second walk: a rest pose carried forward along +Z with
    swinging arms/legs and a slight vertical bob.
    """
    layout = [
        ("Hips", None, (0.0, 100.0, 0.0)),
        ("Spine", "Hips", (0.0, 115.0, 0.0)),
        ("Neck", "Spine", (0.0, 150.0, 0.0)),
        ("Head", "Neck", (0.0, 162.0, 0.0)),
        ("ENDSITE", "Head", (0.0, 178.0, 0.0)),
        ("LeftShoulder", "Spine", (6.0, 145.0, 0.0)),
        ("LeftArm", "LeftShoulder", (18.0, 145.0, 0.0)),
        ("LeftForeArm", "LeftArm", (18.0, 118.0, 0.0)),
        ("LeftHand", "LeftForeArm", (18.0, 94.0, 0.0)),
        ("RightShoulder", "Spine", (-6.0, 145.0, 0.0)),
        ("RightArm", "RightShoulder", (-18.0, 145.0, 0.0)),
        ("RightForeArm", "RightArm", (-18.0, 118.0, 0.0)),
        ("RightHand", "RightForeArm", (-18.0, 94.0, 0.0)),
        ("LeftUpLeg", "Hips", (9.0, 95.0, 0.0)),
        ("LeftLeg", "LeftUpLeg", (9.0, 52.0, 0.0)),
        ("LeftFoot", "LeftLeg", (9.0, 8.0, 0.0)),
        ("ENDSITE", "LeftFoot", (9.0, 0.0, 14.0)),
        ("RightUpLeg", "Hips", (-9.0, 95.0, 0.0)),
        ("RightLeg", "RightUpLeg", (-9.0, 52.0, 0.0)),
        ("RightFoot", "RightLeg", (-9.0, 8.0, 0.0)),
        ("ENDSITE", "RightFoot", (-9.0, 0.0, 14.0)),
    ]
    skeleton = Skeleton([Bone(name=name, parent=parent) for name, parent, _ in layout])
    rest = np.array([position for _, _, position in layout])

    times = np.arange(frames) / frame_rate
    phase = 2.0 * np.pi * times  # one stride cycle per second

    # Swing amplitude along Z per joint: arms and legs swing in opposition
    swing = np.zeros(len(layout))
    for i, (name, _, _) in enumerate(layout):
        if "Hand" in name or "ForeArm" in name:
            swing[i] = 12.0 if name.startswith("Left") else -12.0
        elif "Foot" in name or name.endswith("Leg"):
            swing[i] = -15.0 if name.startswith("Left") else 15.0

    positions = np.repeat(rest[None, :, :], frames, axis=0)
    positions[:, :, 2] += (120.0 * times)[:, None] + swing[None, :] * np.sin(phase)[:, None]
    positions[:, :, 1] += (2.0 * np.abs(np.sin(phase)))[:, None]

    rotations = np.zeros_like(positions)
    rotations[:, 0, 1] = 5.0 * np.sin(phase)

    return PoseTableRig(skeleton, times, positions, rotations)


def run_analysis(path, config, joint_name=None, render=False):
    """
    Run the analysis session on a single pose table.

    Args:
        path (str): Pose table .npz file
        config: AnalysisConfig
        joint_name (str): Joint to track (default: root)
        render (bool): Also save a PNG per descriptor snapshot

    Returns:
        dict: Analysis results (or None on failure)
    """
    base_name = Path(path).stem
    output_dir = f"output/{base_name}/"
    ensure_output_dir(output_dir)

    print(f"\n{'='*70}")
    print("BVH Tool - Motion Descriptor Analysis")
    print(f"File: {os.path.basename(path)}")
    print(f"{'='*70}")

    start_time = time.time()

    try:
        skeleton, rig, clip = load_pose_table(path)
    except (FileNotFoundError, RuntimeError) as e:
        print(f"  FAILED: {e}")
        return None

    renderer = MatplotlibRenderer() if render else None
    viewer = SkeletonAnalysisViewer(rig, skeleton, clip, renderer=renderer, config=config)
    if joint_name and not viewer.select_joint(joint_name):
        return None

    results = {"joint_name": viewer.selected_joint, "frames": len(rig.times), "duration": rig.duration}

    # STEP 1: Kinematics
    print("\n[1/3] Computing kinematics...")
    series = viewer.set_temporal_metric("speed")
    results["kinematics"] = viewer.export_analysis(output_dir)
    print(f"  Samples: {len(series)}, peak 3D speed: {results['kinematics']['max_speed_3d']:.2f} units/s")

    # STEP 2: Distance covered over one playthrough
    print("\n[2/3] Tracking distance covered...")
    viewer.set_active_descriptor(DescriptorType.DISTANCE)
    for t in rig.times:
        rig.set_clock_time(t)
        viewer.tick(t, playing=True, wall_time=t)
    results["distance"] = viewer.tracker.snapshot()
    print(f"  Total distance: {viewer.tracker.total_distance:.2f} units, {len(viewer.tracker.markers)} markers")

    # STEP 3: Descriptor snapshots at the middle frame
    print("\n[3/3] Evaluating descriptors...")
    middle = rig.times[len(rig.times) // 2]
    snapshots = {}
    for kind in SNAPSHOT_DESCRIPTORS:
        rig.set_clock_time(middle)
        viewer.set_active_descriptor(kind)
        viewer.tick(middle, playing=False)
        snapshots[kind] = _describe(viewer.descriptors.active_result)
        if render:
            visualize_pose(viewer, save_path=os.path.join(output_dir, f"{kind}.png"))
    results["descriptors"] = snapshots

    balance = snapshots.get("balance") or {}
    print(f"  Balance at t={middle:.2f}s: {'balanced' if balance.get('is_balanced') else 'unbalanced'}")

    write_json(results, os.path.join(output_dir, "analysis_results.json"))

    elapsed = time.time() - start_time
    print(f"\n{'='*70}")
    print(f"Analysis Complete ({elapsed:.2f}s)")
    print(f"{'='*70}")
    print(f"Output directory: {output_dir}")

    return results


def _describe(result):
    """Plain-dict view of a descriptor result for JSON export."""
    if result is None:
        return None
    fields = {}
    for key, value in vars(result).items():
        if isinstance(value, (np.ndarray, float, int, bool, str, list, np.bool_)):
            fields[key] = value
    return fields


def main():
    """Main entry point for CLI."""
    args = sys.argv[1:]

    config_path = None
    joint_name = None
    render = False
    files = []

    while args:
        arg = args.pop(0)
        if arg == "--config" and args:
            config_path = args.pop(0)
        elif arg == "--joint" and args:
            joint_name = args.pop(0)
        elif arg == "--render":
            render = True
        elif arg == "--demo":
            ensure_output_dir(DEMO_PATH)
            save_pose_table(build_demo_walk(), DEMO_PATH)
            print(f"✓ Demo pose table written: {DEMO_PATH}")
            files.append(DEMO_PATH)
        else:
            files.append(arg)

    if not files:
        print("BVH Tool - Motion Descriptor Analysis\n")
        print("Usage: python examples/run_analysis.py [--config FILE] [--joint NAME] [--render] <pose_table.npz> ...")
        print("       python examples/run_analysis.py --demo [--render]")
        sys.exit(1)

    try:
        config = load_config(config_path)
    except (ValueError, OSError) as e:
        print(f"ERROR: Invalid config: {e}")
        sys.exit(1)

    results = []
    for path in files:
        try:
            results.append((path, run_analysis(path, config, joint_name, render)))
        except Exception as e:
            print(f"\nCRITICAL ERROR: {e}")
            print(traceback.format_exc())
            results.append((path, None))

    success_count = sum(1 for _, res in results if res is not None)
    print(f"\nFiles processed: {len(files)}, successful: {success_count}")
    if success_count < len(files):
        sys.exit(1)


if __name__ == "__main__":
    main()
