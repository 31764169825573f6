#!/usr/bin/env python3
"""
Command-line driver for the interview presence engine.

Runs an interview session end to end:
1. Acquire the capture device (webcam + microphone, or a recorded video)
2. Sample frame + audio every period, one window per question
3. Aggregate each question and the whole interview
4. Write a JSON report with scores, metrics and feedback

Usage:
    # Live session from the default webcam: 3 questions of 60 s each
    python main.py --camera 0 --questions 3 --question-duration 60

    # Replay a recording (no real waiting; the clock is stepped)
    python main.py --video interview.mp4 --question-duration 60

Engineering approach:
- Live mode runs the sampler on its own timer thread
- Replay mode drives the same sampler with a ManualClock, so a recording is
  scored exactly as if it had been sampled live
- Acquisition failures are reported and exit non-zero; nothing in sampling
  or aggregation is fatal
"""

import argparse
import json
import logging
import math
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Dict

from sampling.clock import ManualClock
from sampling.session import InterviewSession
from utils.config_loader import get_nested_config, load_run_config
from utils.errors import AcquisitionError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler('interview_presence.log'),
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger(__name__)

# Time allowed for the landmark model to load before a replay starts
LANDMARK_INIT_TIMEOUT_SEC = 30.0


def run_live_session(
    config: Dict,
    camera_index: int,
    n_questions: int,
    question_duration: float,
    use_landmarks: bool
) -> InterviewSession:
    """
    Sample the webcam and microphone for a number of timed questions.

    Sampling is paused between questions, the way it is while a question
    is being read out.
    """
    from capture.ports import CameraCapturePort

    port = CameraCapturePort(config, camera_index=camera_index)
    session = InterviewSession(port, config, use_landmarks=use_landmarks)
    session.request_capture()

    for i in range(n_questions):
        question_id = f"q{i + 1}"
        session.begin_question(question_id)

        if i == 0:
            session.start_sampling()
        else:
            session.resume_sampling()

        logger.info(f"Answer question {i + 1}/{n_questions} ({question_duration:.0f}s)")
        time.sleep(question_duration)

        session.pause_sampling()
        session.end_question()

    session.stop_sampling()
    return session


def run_replay_session(
    config: Dict,
    video_path: Path,
    n_questions: int,
    question_duration: float,
    use_landmarks: bool
) -> InterviewSession:
    """
    Score a recorded interview by stepping a ManualClock through it.

    The recording is cut into consecutive questions of ``question_duration``
    seconds; ``n_questions`` of 0 means as many as the recording holds.
    """
    from capture.file_port import VideoFileCapturePort

    clock = ManualClock()
    port = VideoFileCapturePort(video_path, clock, config)
    session = InterviewSession(port, config, clock=clock, background=False, use_landmarks=use_landmarks)
    session.request_capture()

    if not session.selector.wait_until_settled(LANDMARK_INIT_TIMEOUT_SEC):
        logger.warning("Landmark detector still loading; replay starts with heuristic detection")

    duration = port.duration
    if n_questions <= 0:
        n_questions = max(1, math.ceil(duration / question_duration))

    period = session.sampler.period
    logger.info(
        f"Replaying {duration:.1f}s as {n_questions} question(s) of {question_duration:.0f}s "
        f"(period {period:.1f}s)"
    )

    session.start_sampling()

    for i in range(n_questions):
        session.begin_question(f"q{i + 1}")
        question_end = min((i + 1) * question_duration, duration)

        while clock() + period <= question_end:
            clock.advance(period)
            session.poll()

        session.end_question()

        if clock() >= duration:
            break

    session.stop_sampling()
    return session


def write_report(session: InterviewSession, output_dir: Path, source: str) -> Path:
    """Write the overall report, per-question aggregates and feedback as JSON."""
    output_dir.mkdir(parents=True, exist_ok=True)

    report = session.get_overall_report()
    sampler = session.sampler

    payload = {
        'generatedAt': datetime.now().isoformat(timespec='seconds'),
        'source': source,
        'report': report.to_dict(),
        'feedback': session.feedback(report.aggregate),
        'questionFeedback': {
            q.question_id: session.feedback(q) for q in report.questions
        },
        'sampler': {
            'periodSec': sampler.period,
            'samples': sampler.sample_count,
            'skippedTicks': sampler.skipped_ticks,
            'droppedTicks': sampler.dropped_ticks,
            'failedTicks': sampler.failed_ticks,
            'detector': session.selector.active_kind.value,
        },
    }

    report_path = output_dir / f"presence_report_{datetime.now().strftime('%Y%m%d_%H%M%S')}.json"
    with open(report_path, 'w', encoding='utf-8') as f:
        json.dump(payload, f, indent=2)

    return report_path


def log_summary(session: InterviewSession):
    report = session.get_overall_report()
    overall = report.aggregate

    logger.info("=" * 80)
    logger.info("INTERVIEW PRESENCE SUMMARY")
    logger.info("=" * 80)
    logger.info(f"Samples: {report.total_samples} over {report.elapsed_minutes:.1f} min")
    for dimension, score in overall.dimension_scores().items():
        logger.info(f"  {dimension:<16} {score:5.2f}/10")
    logger.info(f"  {'consistency':<16} {overall.consistency_score:5.2f}/10 (trend: {overall.trend.value})")
    for q in report.questions:
        logger.info(f"  {q.question_id}: overall {q.overall_score:.2f} from {q.sample_count} samples")
    logger.info(session.feedback_generator.summary(overall))


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Interview presence - posture, movement, audio and presence scoring',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Live session, 3 questions of one minute
  python main.py --camera 0 --questions 3 --question-duration 60

  # Replay a recording in one-minute questions
  python main.py --video interview.mp4 --question-duration 60 --output results/

  # Heuristic detection only, 2 s sampling period
  python main.py --video interview.mp4 --no-landmarks --period 2
        """
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        '--camera',
        type=int,
        help='Camera index for a live session'
    )
    source.add_argument(
        '--video',
        type=str,
        help='Path to a recorded interview to replay'
    )

    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='YAML file overriding the bundled configs/thresholds.yaml'
    )

    parser.add_argument(
        '--output',
        type=str,
        default='data/outputs',
        help='Output directory for reports (default: data/outputs)'
    )

    parser.add_argument(
        '--questions',
        type=int,
        default=None,
        help='Number of questions (default: 3 live, whole recording on replay)'
    )

    parser.add_argument(
        '--question-duration',
        type=float,
        default=60.0,
        help='Seconds per question (default: 60)'
    )

    parser.add_argument(
        '--period',
        type=float,
        default=None,
        help='Sampling period in seconds (default: sampling.period_sec, 5)'
    )

    parser.add_argument(
        '--no-landmarks',
        action='store_true',
        help='Use heuristic face detection only'
    )

    args = parser.parse_args()

    try:
        config = load_run_config(args.config)
    except FileNotFoundError as e:
        logger.error(str(e))
        sys.exit(1)

    if args.period is not None:
        config.setdefault('sampling', {})['period_sec'] = args.period
    if args.question_duration <= 0:
        logger.error("--question-duration must be positive")
        sys.exit(1)

    use_landmarks = not args.no_landmarks and bool(get_nested_config(config, 'detection.landmark.enabled', True))

    session = None
    try:
        if args.video is not None:
            video_path = Path(args.video)
            if not video_path.exists():
                logger.error(f"Video file not found: {video_path}")
                sys.exit(1)

            source = str(video_path)
            session = run_replay_session(
                config, video_path, args.questions or 0, args.question_duration, use_landmarks
            )
        else:
            source = f"camera:{args.camera}"
            session = run_live_session(
                config, args.camera, args.questions or 3, args.question_duration, use_landmarks
            )

        log_summary(session)
        report_path = write_report(session, Path(args.output), source)

        logger.info(f"✓ Report: {report_path}")
        sys.exit(0)

    except AcquisitionError as e:
        logger.error(f"✗ Could not acquire capture device ({type(e).__name__}): {e}")
        sys.exit(2)

    except KeyboardInterrupt:
        logger.warning("Session interrupted by user")
        sys.exit(1)

    except Exception as e:
        logger.error(f"✗ ERROR: Session failed with exception:")
        logger.error(f"  {type(e).__name__}: {str(e)}")
        logger.exception("Full traceback:")
        sys.exit(1)

    finally:
        if session is not None:
            session.close()


if __name__ == '__main__':
    main()
