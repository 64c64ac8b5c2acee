"""
Fixed calibration corpus for the regression gate.

Each example pairs an original passage with an edit that keeps the author's
meaning and voice and one that does not. Bump CALIBRATION_VERSION whenever
an example changes so old baselines are not compared against a new corpus.
"""

from typing import List

from ..models.evaluation import EditorialMode
from ..models.regression import CalibrationExample

CALIBRATION_VERSION = 1

CALIBRATION_DATASET: List[CalibrationExample] = [
    CalibrationExample(
        id="line-terse-founder",
        mode=EditorialMode.LINE,
        original=(
            "We shipped the thing. It broke. Twice. I spent the weekend reading logs I "
            "didn't write and learning that our retry logic retried nothing. Fixed it Monday. "
            "The lesson isn't about retries though. It's that nobody owned the boring parts, "
            "so the boring parts owned us."
        ),
        good_edit=(
            "We shipped the thing. It broke. Twice. I spent the weekend reading logs I "
            "didn't write and learning our retry logic retried nothing. Fixed it Monday. "
            "The lesson isn't about retries, though. Nobody owned the boring parts, "
            "so the boring parts owned us."
        ),
        bad_edit=(
            "Following the successful deployment of our latest release, we unfortunately "
            "encountered a number of unexpected operational challenges which, upon careful "
            "and thorough investigation over the course of the weekend, were ultimately "
            "traced back to a configuration issue within our retry mechanism. It is "
            "important to note that ownership of infrastructure is a critical consideration "
            "for every organization."
        ),
        note="Short punchy sentences must survive a line edit.",
    ),
    CalibrationExample(
        id="line-warm-essay",
        mode=EditorialMode.LINE,
        original=(
            "My grandmother kept a jar of buttons on the windowsill. None of them matched. "
            "When I was small I thought that was a failure of organization, and I told her so. "
            "She laughed and said the jar wasn't for sewing. It was for remembering, and every "
            "button had come off a coat somebody used to wear."
        ),
        good_edit=(
            "My grandmother kept a jar of buttons on the windowsill. None of them matched. "
            "When I was small I thought that was a failure of organization, and I told her so. "
            "She laughed and said the jar wasn't for sewing. It was for remembering: every "
            "button had come off a coat someone used to wear."
        ),
        bad_edit=(
            "Button collecting is a popular hobby with a long history. Collectors value "
            "buttons for their materials, age and manufacturing techniques. Many enthusiasts "
            "organize their collections carefully by color and size, and some rare buttons "
            "can be worth a significant amount of money at auction."
        ),
        note="Anecdote replaced by generic exposition is a meaning and voice failure.",
    ),
    CalibrationExample(
        id="line-hedged-analyst",
        mode=EditorialMode.LINE,
        original=(
            "I think the numbers probably overstate the churn problem. Perhaps a third of the "
            "cancellations came from a single pricing change, and it seems likely most of those "
            "customers would have left anyway. Still, I'd rather we look at cohort retention "
            "before anyone rewrites the roadmap."
        ),
        good_edit=(
            "I think the numbers probably overstate the churn problem. Perhaps a third of the "
            "cancellations came from a single pricing change, and it seems likely most of those "
            "customers would have left anyway. Still, I'd rather we examine cohort retention "
            "before anyone rewrites the roadmap."
        ),
        bad_edit=(
            "CHURN IS A DISASTER!!! We are losing customers at an alarming rate and the pricing "
            "change destroyed everything! Rewrite the roadmap NOW! No more analysis, no more "
            "cohorts, just action!"
        ),
        note="Hedged register must not be flattened into shouting.",
    ),
    CalibrationExample(
        id="dev-argument-order",
        mode=EditorialMode.DEVELOPMENTAL,
        original=(
            "Remote work is not the problem. The problem is that we run remote teams with "
            "office habits. We schedule meetings to feel busy. We write nothing down. Then we "
            "blame the video calls. If we documented decisions and trusted people with quiet "
            "hours, most of the friction would disappear."
        ),
        good_edit=(
            "Remote work is not the problem. We run remote teams with office habits, then "
            "blame the video calls. We schedule meetings to feel busy. We write nothing down. "
            "Document decisions and trust people with quiet hours, and most of the friction "
            "disappears."
        ),
        bad_edit=(
            "Offices are essential for collaboration, and research consistently shows that "
            "in-person teams outperform distributed ones. Companies should require employees "
            "to return to the office full time in order to rebuild culture, improve "
            "mentorship and increase accountability across every department."
        ),
        note="Restructuring is fine; reversing the thesis is not.",
    ),
    CalibrationExample(
        id="dev-story-arc",
        mode=EditorialMode.DEVELOPMENTAL,
        original=(
            "I quit running three times. The first time my knees hurt. The second time I got "
            "bored. The third time I just stopped, and I couldn't tell you why. What finally "
            "stuck was running with my neighbor at six in the morning, mostly because I didn't "
            "want to be the one who cancelled."
        ),
        good_edit=(
            "I quit running three times. First my knees hurt. Then I got bored. The third "
            "time I just stopped, and I still couldn't tell you why. What finally stuck was "
            "running with my neighbor at six in the morning, mostly because I didn't want to "
            "be the one who cancelled."
        ),
        bad_edit=(
            "Running offers numerous health benefits, including improved cardiovascular "
            "fitness, better mood and increased longevity. To build a sustainable habit, "
            "experts recommend setting specific goals, tracking your progress with an app, "
            "and gradually increasing your weekly mileage."
        ),
        note="Personal arc replaced with listicle advice.",
    ),
    CalibrationExample(
        id="dev-dry-humor",
        mode=EditorialMode.DEVELOPMENTAL,
        original=(
            "Our deploy process has eleven steps. Four of them are checking that the previous "
            "step worked. Two are waiting. One is a Slack message that says deploying, which "
            "nobody reads. I would like to propose we delete the other four, but I suspect "
            "those are the ones doing the work."
        ),
        good_edit=(
            "Our deploy process has eleven steps. Four check that the previous step worked. "
            "Two are waiting. One is a Slack message that says deploying, which nobody reads. "
            "I'd propose deleting the other four, but I suspect those are the ones doing the work."
        ),
        bad_edit=(
            "Our deployment pipeline could benefit from several optimizations. We recommend "
            "consolidating verification stages, reducing idle time and improving team "
            "communication. These improvements will increase efficiency and developer "
            "satisfaction while maintaining reliability standards."
        ),
        note="Dry humor must survive restructuring.",
    ),
    CalibrationExample(
        id="copy-typos",
        mode=EditorialMode.COPY,
        original=(
            "Their are two kinds of bugs: the ones you find and the ones your customers find. "
            "I used to think the second kind was rarer. Its not. Its just quieter, because "
            "most customers dont file tickets, they just leave."
        ),
        good_edit=(
            "There are two kinds of bugs: the ones you find and the ones your customers find. "
            "I used to think the second kind was rarer. It's not. It's just quieter, because "
            "most customers don't file tickets; they just leave."
        ),
        bad_edit=(
            "Software defects can be categorized into those detected internally during quality "
            "assurance and those reported externally by end users. Organizations should invest "
            "in comprehensive testing strategies to minimize customer-facing defects and reduce "
            "attrition."
        ),
        note="Copy edits fix mechanics only.",
    ),
    CalibrationExample(
        id="copy-punctuation",
        mode=EditorialMode.COPY,
        original=(
            "I read the whole report twice , once for the numbers and once for what it wasnt "
            "saying. The numbers were fine. The silence was louder: no mention of the outage, "
            "no mention of the people who stayed up fixing it"
        ),
        good_edit=(
            "I read the whole report twice, once for the numbers and once for what it wasn't "
            "saying. The numbers were fine. The silence was louder: no mention of the outage, "
            "no mention of the people who stayed up fixing it."
        ),
        bad_edit=(
            "I read the report. The numbers were fine and everything looked good overall."
        ),
        note="Copy edits must not cut content.",
    ),
    CalibrationExample(
        id="copy-consistency",
        mode=EditorialMode.COPY,
        original=(
            "we tested three onboarding flows. Flow A asked for a credit card up front. flow B "
            "waited until day seven. Flow C never asked and relied on usage limits. B won by a "
            "wide margin, which surprised exactly nobody on the support team."
        ),
        good_edit=(
            "We tested three onboarding flows. Flow A asked for a credit card up front. Flow B "
            "waited until day seven. Flow C never asked and relied on usage limits. B won by a "
            "wide margin, which surprised exactly nobody on the support team."
        ),
        bad_edit=(
            "We tested several onboarding experiences and determined that delaying payment "
            "collection may potentially improve conversion outcomes, although further research "
            "would perhaps be needed to confirm these preliminary and somewhat tentative findings."
        ),
        note="Certain voice must not be hedged away.",
    ),
]
