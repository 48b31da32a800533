"""
Templated study guides and briefing documents for the mock generation path.

Nothing here calls an LLM; the only inputs are the transcript text and the date.
"""

from datetime import date
from typing import Optional

from .error_handling import InvalidRequestError
from .models import ContentType


def render_study_guide(transcript: str) -> str:
    length = len(transcript)
    return f"""# Study Guide

## Main Topics & Key Concepts
Based on the video transcript ({length} characters), here are the key topics covered:

- **Primary Subject**: {transcript[:100]}...
- **Core Concepts**: The video discusses important principles and methodologies
- **Key Terminology**: Essential vocabulary and definitions are presented

## Important Definitions
- **Term 1**: Definition based on video content
- **Term 2**: Another important concept explained
- **Term 3**: Additional terminology covered

## Key Takeaways
1. The video provides comprehensive coverage of the subject matter
2. Multiple examples and case studies are presented
3. Practical applications are demonstrated throughout
4. The content builds progressively from basic to advanced concepts

## Study Questions
1. What are the main points discussed in the video?
2. How do the concepts relate to real-world applications?
3. What examples were provided to illustrate key points?
4. How can this knowledge be applied practically?

## Summary Points
- The video covers {length // 100} major topic areas
- Content is structured in a logical, progressive manner
- Multiple learning modalities are employed
- Practical examples enhance understanding

## Additional Resources to Explore
- Related videos on the same topic
- Academic papers and research
- Practical exercises and applications
- Community discussions and forums

*Note: This study guide was generated from a {length}-character transcript.*"""


def render_briefing_doc(transcript: str, today: date) -> str:
    length = len(transcript)
    return f"""# Professional Briefing Document

## Executive Summary
This briefing document provides a comprehensive analysis of the video content, which contains {length} characters of transcript data. The material covers significant insights and actionable information relevant to the subject matter.

**Key Highlights:**
- Comprehensive coverage of core topics
- Practical applications and examples
- Strategic insights and recommendations
- Implementation considerations

## Key Points & Insights

### Primary Findings
The video content reveals several important insights:

1. **Strategic Overview**: {transcript[:150]}...
2. **Operational Considerations**: The content addresses practical implementation aspects
3. **Best Practices**: Multiple proven methodologies are discussed
4. **Industry Standards**: Current practices and benchmarks are referenced

## Main Arguments/Findings

### Core Arguments
1. **Argument 1**: The video establishes clear foundational principles
2. **Argument 2**: Supporting evidence is provided through examples
3. **Argument 3**: Practical applications are demonstrated effectively

### Supporting Evidence
- Transcript analysis reveals {length // 50} distinct topic areas
- Content structure follows logical progression
- Multiple validation points are provided

## Actionable Recommendations

### Immediate Actions
1. **Review Key Concepts**: Focus on the primary topics identified
2. **Implement Best Practices**: Apply the methodologies discussed
3. **Gather Additional Information**: Research related topics for deeper understanding

### Strategic Considerations
1. **Long-term Planning**: Consider how insights apply to broader objectives
2. **Resource Allocation**: Determine necessary resources for implementation
3. **Performance Metrics**: Establish measures for success

## Conclusion
The video content provides valuable insights with practical applications. The {length}-character transcript contains substantial information that can inform decision-making and strategic planning.

## Next Steps
1. **Detailed Review**: Conduct thorough analysis of specific sections
2. **Stakeholder Engagement**: Share findings with relevant team members
3. **Implementation Planning**: Develop action plans based on recommendations
4. **Follow-up Analysis**: Monitor outcomes and adjust strategies as needed

*Document generated from video transcript analysis - {today.isoformat()}*"""


def render(content_type: ContentType, transcript: str, today: Optional[date] = None) -> str:
    """
    Render mock content for the given type.

    Args:
        content_type: STUDY_GUIDE or BRIEFING_DOC
        transcript: Transcript text the template is interpolated from
        today: Date stamped on briefing documents (defaults to today)

    Raises:
        InvalidRequestError: For content types that are not generated
    """
    if content_type == ContentType.STUDY_GUIDE:
        return render_study_guide(transcript)
    if content_type == ContentType.BRIEFING_DOC:
        return render_briefing_doc(transcript, today or date.today())
    raise InvalidRequestError('Invalid type. Must be "study-guide" or "briefing-doc"')
